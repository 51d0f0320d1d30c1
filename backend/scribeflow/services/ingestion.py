"""
Batch ingestion

Creates a batch and its not-started segments from already-extracted segment
metadata (the zip upload itself happens elsewhere). Segments are assigned to
the batch's workers round-robin, in the order the workers were given.
"""
import itertools
import logging
import uuid
from typing import Iterable, List, Mapping, Optional

from scribeflow.core.errors import ValidationError
from scribeflow.services.entities import Action, Batch, BatchRecord, Segment
from scribeflow.services.workflow import SegmentWorkflowEngine

logger = logging.getLogger(__name__)


class BatchIngestion:
    def __init__(self, engine: SegmentWorkflowEngine):
        self._engine = engine

    async def ingest(
        self,
        user_id: str,
        name: str,
        items: Iterable[Mapping],
        assigned_workers: List[str],
        batch_id: Optional[str] = None,
    ) -> Batch:
        """
        Create a batch.

        Args:
            user_id: Acting user (needs upload-batch)
            name: Batch display name
            items: Mappings with "filename" and "duration" (seconds)
            assigned_workers: User ids that may edit segments; at least one
            batch_id: Optional explicit id (generated otherwise)

        Raises:
            ValidationError: Empty batch, bad item, or an assignee who cannot edit segments
            PersistenceFailure: If the sink rejects a segment
        """
        await self._engine.gate.require(user_id, Action.UPLOAD_BATCH)

        name = (name or "").strip()
        if not name:
            raise ValidationError("Batch name is required", code="BATCH_NAME_REQUIRED")
        items = list(items)
        if not items:
            raise ValidationError("A batch needs at least one segment", code="BATCH_EMPTY")
        if not assigned_workers:
            raise ValidationError("Assign at least one worker", code="BATCH_UNASSIGNED")
        for worker_id in assigned_workers:
            result = await self._engine.gate.check(worker_id, Action.EDIT_SEGMENT)
            if not result.allowed:
                raise ValidationError(
                    f"User {worker_id} cannot be assigned transcription work",
                    code="INVALID_ASSIGNEE",
                )

        now = self._engine.now()
        record = BatchRecord(
            id=batch_id or str(uuid.uuid4()),
            name=name,
            assigned_workers=list(assigned_workers),
            created_at=now,
            updated_at=now,
        )
        workers = itertools.cycle(assigned_workers)
        segments = []
        for item in items:
            filename = str(item.get("filename") or "").strip()
            if not filename:
                raise ValidationError("Every segment needs a filename", code="SEGMENT_FILENAME_REQUIRED")
            try:
                duration = float(item.get("duration") or 0)
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid duration for {filename}", code="SEGMENT_DURATION_INVALID")
            if duration < 0:
                raise ValidationError(f"Invalid duration for {filename}", code="SEGMENT_DURATION_INVALID")
            segments.append(Segment(
                id=str(uuid.uuid4()),
                batch_id=record.id,
                filename=filename,
                duration=duration,
                assigned_to=next(workers),
                created_at=now,
                updated_at=now,
            ))

        for segment in segments:
            await self._engine.persist(segment)
        batch = self._engine.store.add_batch(record, segments)
        logger.info("[ingest] batch %s (%s) with %d segments", batch.id, batch.name, batch.total_segments)
        return batch
