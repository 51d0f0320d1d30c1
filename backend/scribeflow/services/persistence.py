"""
Persistence collaborators

A sink durably stores a segment's current field set. The contract is just
save(segment) -> bool; retries belong to the auto-save controller.
"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, List

from scribeflow.services.entities import Segment

logger = logging.getLogger(__name__)


class SegmentSink(ABC):
    @abstractmethod
    async def save(self, segment: Segment) -> bool:
        """Store the segment. Returns False (or raises) on failure."""
        pass


class MemorySegmentSink(SegmentSink):
    """Keeps the latest snapshot per segment and a log of every save call."""

    def __init__(self):
        self.snapshots: Dict[str, Segment] = {}
        self.calls: List[Segment] = []

    async def save(self, segment: Segment) -> bool:
        self.calls.append(segment)
        self.snapshots[segment.id] = segment
        return True


class TortoiseSegmentSink(SegmentSink):
    """Upserts one segment_snapshots row per segment."""

    async def save(self, segment: Segment) -> bool:
        from scribeflow.models.segment import SegmentSnapshot

        try:
            await SegmentSnapshot.update_or_create(
                id=segment.id,
                defaults=SegmentSnapshot.fields_from_segment(segment),
            )
        except Exception:
            logger.warning("[sink] failed to store segment %s", segment.id, exc_info=True)
            return False
        return True
