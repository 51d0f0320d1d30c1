"""
Workflow service factory

Builds one consistent set of workflow services around a single store. The
API keeps the result on app.state; tests build their own with in-memory
collaborators and a manual scheduler.
"""
import datetime as dt
from dataclasses import dataclass
from typing import Callable, Optional

from scribeflow.core.store import WorkflowStore
from scribeflow.services.analytics import AnalyticsService
from scribeflow.services.authorization import AuthorizationGate
from scribeflow.services.autosave import AutoSaveController
from scribeflow.services.entities import utc_now
from scribeflow.services.export import ExportFilterEngine
from scribeflow.services.identity import IdentityProvider
from scribeflow.services.ingestion import BatchIngestion
from scribeflow.services.persistence import SegmentSink
from scribeflow.services.review import ReviewPipeline
from scribeflow.services.scheduler import AsyncioScheduler, Scheduler
from scribeflow.services.workflow import SegmentWorkflowEngine


@dataclass
class WorkflowServices:
    store: WorkflowStore
    gate: AuthorizationGate
    engine: SegmentWorkflowEngine
    autosave: AutoSaveController
    review: ReviewPipeline
    export: ExportFilterEngine
    ingestion: BatchIngestion
    analytics: AnalyticsService


def build_services(
    identity: IdentityProvider,
    sink: SegmentSink,
    scheduler: Optional[Scheduler] = None,
    delay_ms: int = 2000,
    clock: Callable[[], dt.datetime] = utc_now,
    store: Optional[WorkflowStore] = None,
) -> WorkflowServices:
    store = store or WorkflowStore()
    gate = AuthorizationGate(identity)
    engine = SegmentWorkflowEngine(store, gate, sink, clock=clock)
    return WorkflowServices(
        store=store,
        gate=gate,
        engine=engine,
        autosave=AutoSaveController(engine, scheduler or AsyncioScheduler(), delay_ms=delay_ms),
        review=ReviewPipeline(engine),
        export=ExportFilterEngine(engine),
        ingestion=BatchIngestion(engine),
        analytics=AnalyticsService(engine),
    )
