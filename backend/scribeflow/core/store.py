# scribeflow/core/store.py
"""
In-memory workflow store.
Holds the segment collection, batch records and the transcription progress
side-table for one running service. Every workflow service receives the store
explicitly instead of reaching for a module-level global, so tests can build a
fresh store per case.
"""
from typing import Dict, Iterable, List, Optional

from scribeflow.core.errors import NotFoundError
from scribeflow.services.entities import (
    Batch,
    BatchRecord,
    BatchStatus,
    Segment,
    SegmentStatus,
    TranscriptionProgress,
)


class WorkflowStore:
    """
    Source of truth for segment workflow state.

    Segments are replaced as whole records (put_segment), never patched field
    by field. Batch counts and status are derived on read from the member
    segments.
    """

    def __init__(self):
        self._segments: Dict[str, Segment] = {}
        self._batches: Dict[str, BatchRecord] = {}
        self._progress: Dict[str, TranscriptionProgress] = {}

    # -------- segments --------
    def add_segment(self, segment: Segment) -> Segment:
        """
        Register a freshly ingested segment.

        Raises:
            ValueError: If a segment with the same id already exists
        """
        if segment.id in self._segments:
            raise ValueError(f"segment {segment.id} already exists")
        self._segments[segment.id] = segment
        return segment

    def get_segment(self, segment_id: str) -> Segment:
        """
        Look up a segment by id.

        Raises:
            NotFoundError: If no segment has this id
        """
        segment = self._segments.get(segment_id)
        if segment is None:
            raise NotFoundError(f"Segment {segment_id} not found", code="SEGMENT_NOT_FOUND")
        return segment

    def put_segment(self, segment: Segment) -> None:
        if segment.id not in self._segments:
            raise NotFoundError(f"Segment {segment.id} not found", code="SEGMENT_NOT_FOUND")
        self._segments[segment.id] = segment

    def segments(self) -> List[Segment]:
        """Snapshot of every segment in ingestion order."""
        return list(self._segments.values())

    def segments_for(self, user_id: str) -> List[Segment]:
        return [s for s in self._segments.values() if s.assigned_to == user_id]

    def segments_by_status(self, status: SegmentStatus) -> List[Segment]:
        return [s for s in self._segments.values() if s.status == status]

    def segments_in_batch(self, batch_id: str) -> List[Segment]:
        return [s for s in self._segments.values() if s.batch_id == batch_id]

    # -------- batches --------
    def add_batch(self, record: BatchRecord, segments: Iterable[Segment] = ()) -> Batch:
        if record.id in self._batches:
            raise ValueError(f"batch {record.id} already exists")
        members = list(segments)
        for segment in members:
            if segment.id in self._segments:
                raise ValueError(f"segment {segment.id} already exists")
        self._batches[record.id] = record
        for segment in members:
            self._segments[segment.id] = segment
        return self.get_batch(record.id)

    def get_batch(self, batch_id: str) -> Batch:
        record = self._batches.get(batch_id)
        if record is None:
            raise NotFoundError(f"Batch {batch_id} not found", code="BATCH_NOT_FOUND")
        return self._aggregate(record)

    def batches(self) -> List[Batch]:
        return [self._aggregate(r) for r in self._batches.values()]

    def _aggregate(self, record: BatchRecord) -> Batch:
        members = self.segments_in_batch(record.id)
        completed = sum(1 for s in members if s.status == SegmentStatus.COMPLETED)
        if members and completed == len(members):
            status = BatchStatus.COMPLETED
        elif all(s.status == SegmentStatus.NOT_STARTED for s in members):
            status = BatchStatus.PENDING
        else:
            status = BatchStatus.IN_PROGRESS
        updated_at = max([record.updated_at] + [s.updated_at for s in members])
        return Batch(
            id=record.id,
            name=record.name,
            total_segments=len(members),
            completed_segments=completed,
            status=status,
            assigned_workers=list(record.assigned_workers),
            created_at=record.created_at,
            updated_at=updated_at,
        )

    # -------- progress side-table --------
    def get_progress(self, segment_id: str) -> Optional[TranscriptionProgress]:
        return self._progress.get(segment_id)

    def put_progress(self, progress: TranscriptionProgress) -> None:
        self._progress[progress.segment_id] = progress
