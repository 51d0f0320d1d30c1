"""
Dashboard and system analytics, computed on read from the segment snapshot.
"""
import datetime as dt
from collections import Counter
from typing import Iterable, List, Optional

from scribeflow.services.entities import Action, Segment, SegmentStatus, utc_now

DAILY_WINDOW_DAYS = 7


def worker_summary(segments: Iterable[Segment], worker_id: str) -> dict:
    """Counts shown on a worker's dashboard."""
    mine = [s for s in segments if s.assigned_to == worker_id]
    by_status = Counter(s.status for s in mine)
    total = len(mine)
    completed = by_status[SegmentStatus.COMPLETED]
    return {
        "totalSegments": total,
        "completedSegments": completed,
        "inProgressSegments": by_status[SegmentStatus.IN_PROGRESS],
        "notStartedSegments": by_status[SegmentStatus.NOT_STARTED],
        "returnedSegments": by_status[SegmentStatus.RETURNED],
        "progressPercentage": round(completed / total * 100, 1) if total else 0.0,
    }


def system_statistics(segments: Iterable[Segment], now: Optional[dt.datetime] = None) -> dict:
    """
    System-wide statistics.

    approvalRate is the share of reviewed segments currently standing as
    completed (approved or resubmitted) versus returned.
    averageProcessingTime is in seconds, createdAt -> updatedAt of completed segments.
    """
    segments = list(segments)
    now = now or utc_now()
    completed = [s for s in segments if s.status == SegmentStatus.COMPLETED]
    reviewed = [s for s in segments if s.reviewed_by]
    approved = [s for s in reviewed if s.status == SegmentStatus.COMPLETED]

    active_workers = {
        s.assigned_to for s in segments
        if s.assigned_to and s.status in (SegmentStatus.IN_PROGRESS, SegmentStatus.COMPLETED, SegmentStatus.RETURNED)
    }

    if completed:
        avg_seconds = sum((s.updated_at - s.created_at).total_seconds() for s in completed) / len(completed)
    else:
        avg_seconds = 0.0

    return {
        "totalSegments": len(segments),
        "completedSegments": len(completed),
        "averageProcessingTime": round(avg_seconds, 1),
        "approvalRate": round(len(approved) / len(reviewed) * 100, 1) if reviewed else 0.0,
        "activeWorkers": len(active_workers),
        "dailyProgress": _daily_progress(completed, now),
    }


def _daily_progress(completed: List[Segment], now: dt.datetime) -> List[dict]:
    today = now.date()
    days = [today - dt.timedelta(days=offset) for offset in range(DAILY_WINDOW_DAYS - 1, -1, -1)]
    counts = Counter(s.updated_at.date() for s in completed)
    return [{"date": d.isoformat(), "completed": counts.get(d, 0)} for d in days]


class AnalyticsService:
    def __init__(self, engine):
        self._engine = engine

    async def dashboard(self, user_id: str) -> dict:
        actor = await self._engine.gate.require(user_id, Action.VIEW_DASHBOARD)
        return worker_summary(self._engine.store.segments(), actor.id)

    async def system(self, user_id: str) -> dict:
        await self._engine.gate.require(user_id, Action.VIEW_ANALYTICS)
        return system_statistics(self._engine.store.segments(), self._engine.now())
