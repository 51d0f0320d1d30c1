"""
Review pipeline

Approve / deny on top of the workflow engine's completed-state transitions.
The pending queue is every completed segment, oldest activity first.
"""
import logging
from typing import List, Optional

from scribeflow.core.errors import ValidationError
from scribeflow.services.entities import (
    Action,
    DenialReason,
    ReviewDecision,
    ReviewOutcome,
    Segment,
    SegmentStatus,
)
from scribeflow.services.workflow import SegmentWorkflowEngine

logger = logging.getLogger(__name__)


def parse_denial_reason(value) -> DenialReason:
    """
    Convert a wire value into a DenialReason.

    Raises:
        ValidationError: If value is missing or outside the closed set
    """
    if isinstance(value, DenialReason):
        return value
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("A denial reason is required", code="DENIAL_REASON_REQUIRED")
    try:
        return DenialReason(str(value).strip())
    except ValueError:
        allowed = ", ".join(r.value for r in DenialReason)
        raise ValidationError(
            f"Unknown denial reason '{value}'; expected one of: {allowed}",
            code="DENIAL_REASON_INVALID",
        )


class ReviewPipeline:
    def __init__(self, engine: SegmentWorkflowEngine):
        self._engine = engine

    async def list_pending(self, user_id: str) -> List[Segment]:
        """Completed segments ordered by updatedAt ascending (FIFO)."""
        await self._engine.gate.require(user_id, Action.VIEW_REVIEW_QUEUE)
        pending = self._engine.store.segments_by_status(SegmentStatus.COMPLETED)
        return sorted(pending, key=lambda s: s.updated_at)

    async def stats(self, user_id: str) -> dict:
        """Counters shown beside the review queue."""
        actor = await self._engine.gate.require(user_id, Action.VIEW_REVIEW_QUEUE)
        segments = self._engine.store.segments()
        return {
            "pending": sum(1 for s in segments if s.status == SegmentStatus.COMPLETED),
            "reviewedByMe": sum(1 for s in segments if s.reviewed_by == actor.id),
            "returned": sum(1 for s in segments if s.status == SegmentStatus.RETURNED),
        }

    async def approve(self, segment_id: str, reviewer_id: str) -> ReviewDecision:
        segment = await self._engine.approve(reviewer_id, segment_id)
        return ReviewDecision(
            segment_id=segment.id,
            decision=ReviewOutcome.APPROVE,
            reviewed_by=segment.reviewed_by,
            reviewed_at=segment.updated_at,
        )

    async def deny(
        self,
        segment_id: str,
        reviewer_id: str,
        reason,
        comments: Optional[str] = None,
    ) -> ReviewDecision:
        """
        Return a completed segment to its worker.

        Raises:
            ValidationError: If reason is missing or not a known denial reason
            AuthorizationError: If the reviewer lacks approve-or-deny
        """
        denial = parse_denial_reason(reason)
        segment = await self._engine.deny(reviewer_id, segment_id, denial)
        if comments:
            logger.info("[review] %s denied (%s): %s", segment_id, denial.value, comments)
        return ReviewDecision(
            segment_id=segment.id,
            decision=ReviewOutcome.DENY,
            reviewed_by=segment.reviewed_by,
            reviewed_at=segment.updated_at,
            reason=denial,
            comments=comments or None,
        )
