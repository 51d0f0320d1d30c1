"""
Segment workflow engine

State machine for a segment's lifecycle:

    not-started --open/edit--> in-progress --submit--> completed
    completed --approve--> completed (reviewer recorded)
    completed --deny--> returned --edit--> in-progress
    returned --resubmit--> completed

Every transition re-checks permission through the gate, runs under a
per-segment lock, persists the new record through the sink and only then
replaces it in the store. A failed save leaves the store untouched.
"""
import asyncio
import contextlib
import datetime as dt
import logging
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from scribeflow.core.errors import (
    AuthorizationError,
    InvalidTransitionError,
    PersistenceFailure,
    ValidationError,
)
from scribeflow.core.store import WorkflowStore
from scribeflow.services.authorization import AuthorizationGate
from scribeflow.services.entities import (
    Action,
    Actor,
    DenialReason,
    Segment,
    SegmentStatus,
    utc_now,
)
from scribeflow.services.persistence import SegmentSink

logger = logging.getLogger(__name__)


class SegmentWorkflowEngine:
    def __init__(
        self,
        store: WorkflowStore,
        gate: AuthorizationGate,
        sink: SegmentSink,
        clock: Callable[[], dt.datetime] = utc_now,
    ):
        self._store = store
        self._gate = gate
        self._sink = sink
        self._clock = clock
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @property
    def store(self) -> WorkflowStore:
        return self._store

    @property
    def gate(self) -> AuthorizationGate:
        return self._gate

    def now(self) -> dt.datetime:
        return self._clock()

    @contextlib.asynccontextmanager
    async def _lock(self, segment_id: str):
        """Hold the segment's lock; the lock is dropped once nobody holds or awaits it."""
        lock = self._locks.setdefault(segment_id, asyncio.Lock())
        self._lock_users[segment_id] = self._lock_users.get(segment_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[segment_id] -= 1
            if not self._lock_users[segment_id]:
                del self._lock_users[segment_id]
                del self._locks[segment_id]

    # -------- reads --------
    async def get(self, user_id: str, segment_id: str) -> Segment:
        """
        Read a single segment.

        The assignee may read its own segment; reviewers (view-review-queue)
        may read any segment.
        """
        review = await self._gate.check(user_id, Action.VIEW_REVIEW_QUEUE)
        segment = self._store.get_segment(segment_id)
        if review.allowed:
            return segment
        actor = await self._gate.require(user_id, Action.EDIT_SEGMENT)
        self._check_owner(actor, segment)
        return segment

    async def check_editable(self, user_id: str, segment_id: str) -> Segment:
        """
        Verify the actor may edit the segment right now (permission,
        ownership and a status that accepts edits) without changing anything.

        Raises:
            InvalidTransitionError: If the segment is completed
        """
        actor = await self._gate.require(user_id, Action.EDIT_SEGMENT)
        segment = self._store.get_segment(segment_id)
        self._check_owner(actor, segment)
        if segment.status == SegmentStatus.COMPLETED:
            raise InvalidTransitionError(
                f"Segment {segment_id} is completed and cannot be edited"
            )
        return segment

    async def segments_for(self, user_id: str) -> List[Segment]:
        """Segments assigned to the acting worker (dashboard list)."""
        actor = await self._gate.require(user_id, Action.VIEW_DASHBOARD)
        return self._store.segments_for(actor.id)

    # -------- worker transitions --------
    async def open(self, user_id: str, segment_id: str) -> Segment:
        """
        Worker opens a segment. not-started moves to in-progress; any other
        status is returned unchanged.
        """
        async with self._lock(segment_id):
            actor = await self._gate.require(user_id, Action.EDIT_SEGMENT)
            segment = self._store.get_segment(segment_id)
            self._check_owner(actor, segment)
            if segment.status != SegmentStatus.NOT_STARTED:
                return segment
            updated = replace(segment, status=SegmentStatus.IN_PROGRESS, updated_at=self.now())
            logger.info("[workflow] %s opened by %s -> in-progress", segment_id, actor.id)
            return await self._commit(updated)

    async def save_draft(self, user_id: str, segment_id: str, text: str) -> Segment:
        """
        Store draft text for a segment.

        Non-empty text moves not-started and returned segments to in-progress
        (clearing the return reason). Whitespace-only text is stored without a
        status change. Completed segments reject edits.

        Raises:
            InvalidTransitionError: If the segment is completed
            AuthorizationError: If the actor cannot edit or is not the assignee
            PersistenceFailure: If the sink fails
        """
        async with self._lock(segment_id):
            actor = await self._gate.require(user_id, Action.EDIT_SEGMENT)
            segment = self._store.get_segment(segment_id)
            self._check_owner(actor, segment)
            if segment.status == SegmentStatus.COMPLETED:
                raise InvalidTransitionError(
                    f"Segment {segment_id} is completed and cannot be edited"
                )

            status = segment.status
            return_reason = segment.return_reason
            if text.strip() and status in (SegmentStatus.NOT_STARTED, SegmentStatus.RETURNED):
                status = SegmentStatus.IN_PROGRESS
                return_reason = None

            updated = replace(
                segment,
                transcription=text,
                status=status,
                return_reason=return_reason,
                updated_at=self.now(),
            )
            return await self._commit(updated)

    async def submit(self, user_id: str, segment_id: str, text: Optional[str] = None) -> Segment:
        """
        Submit a transcription for review.

        When text is None the stored transcription is submitted. Submitting an
        already completed segment is a no-op success, so duplicate client
        requests are harmless.

        Raises:
            ValidationError: If the transcription is empty or whitespace
            InvalidTransitionError: If the segment was never opened
        """
        async with self._lock(segment_id):
            actor = await self._gate.require(user_id, Action.EDIT_SEGMENT)
            segment = self._store.get_segment(segment_id)
            self._check_owner(actor, segment)

            if segment.status == SegmentStatus.COMPLETED:
                return segment
            if segment.status == SegmentStatus.NOT_STARTED:
                raise InvalidTransitionError(
                    f"Segment {segment_id} must be opened before it can be submitted"
                )

            final_text = segment.transcription if text is None else text
            if not final_text.strip():
                raise ValidationError(
                    "Transcription is empty", code="EMPTY_TRANSCRIPTION"
                )

            # A returned segment re-enters in-progress on the way to completed,
            # which is why the return reason is dropped here.
            updated = replace(
                segment,
                transcription=final_text,
                status=SegmentStatus.COMPLETED,
                return_reason=None,
                updated_at=self.now(),
            )
            logger.info("[workflow] %s submitted by %s -> completed", segment_id, actor.id)
            return await self._commit(updated)

    # -------- review transitions --------
    async def approve(self, reviewer_id: str, segment_id: str) -> Segment:
        """Record an approval. The last reviewer overwrites any earlier one."""
        async with self._lock(segment_id):
            actor = await self._gate.require(reviewer_id, Action.APPROVE_OR_DENY)
            segment = self._store.get_segment(segment_id)
            self._check_reviewable(segment)
            updated = replace(segment, reviewed_by=actor.id, updated_at=self.now())
            logger.info("[workflow] %s approved by %s", segment_id, actor.id)
            return await self._commit(updated)

    async def deny(self, reviewer_id: str, segment_id: str, reason: DenialReason) -> Segment:
        """
        Return a completed segment to its worker.

        Raises:
            ValidationError: If reason is not one of DenialReason
            InvalidTransitionError: If the segment is not completed
        """
        if not isinstance(reason, DenialReason):
            raise ValidationError("A denial reason is required", code="DENIAL_REASON_REQUIRED")
        async with self._lock(segment_id):
            actor = await self._gate.require(reviewer_id, Action.APPROVE_OR_DENY)
            segment = self._store.get_segment(segment_id)
            self._check_reviewable(segment)
            updated = replace(
                segment,
                status=SegmentStatus.RETURNED,
                return_reason=reason,
                reviewed_by=actor.id,
                updated_at=self.now(),
            )
            logger.info("[workflow] %s denied by %s (%s)", segment_id, actor.id, reason.value)
            return await self._commit(updated)

    # -------- helpers --------
    @staticmethod
    def _check_owner(actor: Actor, segment: Segment) -> None:
        if segment.assigned_to != actor.id:
            raise AuthorizationError(
                f"Segment {segment.id} is not assigned to {actor.id}", code="NOT_ASSIGNEE"
            )

    @staticmethod
    def _check_reviewable(segment: Segment) -> None:
        if segment.status != SegmentStatus.COMPLETED:
            raise InvalidTransitionError(
                f"Segment {segment.id} is {segment.status.value}; only completed segments can be reviewed"
            )

    async def persist(self, segment: Segment) -> None:
        """
        Hand a segment record to the persistence collaborator.

        Raises:
            PersistenceFailure: If the sink returns False or raises
        """
        try:
            ok = await self._sink.save(segment)
        except Exception as exc:
            logger.warning("[workflow] sink raised while saving %s: %r", segment.id, exc)
            raise PersistenceFailure(f"Saving segment {segment.id} failed") from exc
        if not ok:
            logger.warning("[workflow] sink rejected segment %s", segment.id)
            raise PersistenceFailure(f"Saving segment {segment.id} failed")

    async def _commit(self, segment: Segment) -> Segment:
        await self.persist(segment)
        self._store.put_segment(segment)
        return segment
