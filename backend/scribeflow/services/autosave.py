"""
Auto-save controller

Owns the draft text of each segment being edited and persists it after every
pause in typing (trailing debounce). Per draft:

    clean -> dirty -> saving -> clean
                      saving -> dirty   (edited again before the save landed)

Guarantees:
  - on_edit() is synchronous and only touches memory;
  - one debounce timer per draft, cancelled and restarted by every edit;
  - at most one save in flight per segment; a timer that fires while a save is
    in flight queues exactly one follow-up save;
  - complete() bypasses the debounce and waits for the in-flight save first;
  - close() cancels the timer but lets an in-flight save finish.
"""
import asyncio
import datetime as dt
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from scribeflow.core.errors import PersistenceFailure, WorkflowError
from scribeflow.services.entities import Segment, SegmentStatus, TranscriptionProgress
from scribeflow.services.scheduler import Scheduler, TimerHandle
from scribeflow.services.workflow import SegmentWorkflowEngine

logger = logging.getLogger(__name__)

PROGRESS_EMPTY = 0
PROGRESS_DRAFTED = 50
PROGRESS_SUBMITTED = 100


class DraftState(str, Enum):
    CLEAN = "clean"
    DIRTY = "dirty"
    SAVING = "saving"


@dataclass
class DraftStatus:
    """What the status indicator shows for one segment."""
    segment_id: str
    state: DraftState
    dirty: bool
    progress: int
    last_saved: Optional[dt.datetime]
    last_error: Optional[WorkflowError] = None

    def to_dict(self) -> dict:
        return {
            "segmentId": self.segment_id,
            "state": self.state.value,
            "dirty": self.dirty,
            "progress": self.progress,
            "lastSaved": self.last_saved.isoformat() if self.last_saved else None,
            "error": self.last_error.to_detail() if self.last_error else None,
        }


class _Draft:
    def __init__(self, user_id: str, segment_id: str, text: str):
        self.user_id = user_id
        self.segment_id = segment_id
        self.text = text
        self.revision = 0
        self.saved_revision = 0
        self.state = DraftState.CLEAN
        self.timer: Optional[TimerHandle] = None
        self.queued = False
        self.closed = False
        self.last_error: Optional[WorkflowError] = None


StatusListener = Callable[[DraftStatus], None]


class AutoSaveController:
    def __init__(
        self,
        engine: SegmentWorkflowEngine,
        scheduler: Scheduler,
        delay_ms: int = 2000,
    ):
        self._engine = engine
        self._store = engine.store
        self._scheduler = scheduler
        self._delay = delay_ms / 1000.0
        self._drafts: Dict[str, _Draft] = {}
        self._inflight: Dict[str, asyncio.Task] = {}
        self._listeners: List[StatusListener] = []

    # -------- listeners --------
    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register a status listener. Returns a function that removes it."""
        self._listeners.append(listener)

        def _unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, draft: _Draft) -> None:
        status = self._status_of(draft)
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                logger.exception("[autosave] status listener failed for %s", draft.segment_id)

    # -------- session --------
    async def open(self, user_id: str, segment_id: str) -> Segment:
        """
        Open a segment for editing and start a new draft session.
        Re-opening a segment that already has a live draft keeps that draft.
        """
        segment = await self._engine.open(user_id, segment_id)
        draft = self._drafts.get(segment_id)
        if draft is None or draft.user_id != user_id:
            if draft is not None:
                self._close_draft(draft)
            self._start_session(user_id, segment_id, segment.transcription, segment.status)
        return segment

    def _start_session(self, user_id: str, segment_id: str, text: str,
                       status: Optional[SegmentStatus] = None) -> _Draft:
        draft = _Draft(user_id, segment_id, text)
        self._drafts[segment_id] = draft
        if status == SegmentStatus.COMPLETED:
            initial = PROGRESS_SUBMITTED
        else:
            initial = PROGRESS_DRAFTED if text.strip() else PROGRESS_EMPTY
        previous = self._store.get_progress(segment_id)
        self._store.put_progress(TranscriptionProgress(
            segment_id=segment_id,
            progress=initial,
            last_saved=previous.last_saved if previous else None,
        ))
        return draft

    def on_edit(self, user_id: str, segment_id: str, text: str) -> DraftStatus:
        """Record new draft text and (re)start the debounce timer."""
        draft = self._drafts.get(segment_id)
        if draft is None:
            draft = self._start_session(user_id, segment_id, text)
        draft.user_id = user_id
        draft.text = text
        draft.revision += 1
        draft.state = DraftState.DIRTY
        self._restart_timer(draft)
        self._notify(draft)
        return self._status_of(draft)

    async def complete(self, user_id: str, segment_id: str) -> Segment:
        """
        Submit the current draft immediately.

        Cancels the pending debounce timer and any queued follow-up, waits for
        an in-flight save, then submits through the engine.

        Raises:
            WorkflowError: Whatever the engine's submit raises; a dirty draft
                gets its debounce timer back in that case
        """
        draft = self._drafts.get(segment_id)
        text = None
        if draft is not None:
            self._cancel_timer(draft)
            draft.queued = False
            await self.flush(segment_id)
            text = draft.text

        try:
            segment = await self._engine.submit(user_id, segment_id, text)
        except WorkflowError as exc:
            if draft is not None:
                draft.last_error = exc
                if draft.revision != draft.saved_revision and not draft.closed:
                    self._restart_timer(draft)
                self._notify(draft)
            raise

        self._record_progress(segment_id, PROGRESS_SUBMITTED)
        if draft is not None:
            self._cancel_timer(draft)
            draft.saved_revision = draft.revision
            draft.state = DraftState.CLEAN
            draft.last_error = None
            self._notify(draft)
        return segment

    def close(self, segment_id: str) -> Optional[DraftStatus]:
        """
        Navigation away from a segment. Pending timers are cancelled; an
        in-flight save is left to complete.

        Returns:
            The final status of the draft, or None if there was no draft
        """
        draft = self._drafts.get(segment_id)
        if draft is None:
            return None
        self._close_draft(draft)
        return self._status_of(draft)

    def close_user(self, user_id: str) -> int:
        """
        One user's session ended (logout): cancel the timers of every draft
        they own. In-flight saves still land.

        Returns:
            Number of drafts closed
        """
        owned = [d for d in self._drafts.values() if d.user_id == user_id]
        for draft in owned:
            self._close_draft(draft)
        return len(owned)

    def close_all(self) -> None:
        """Session end: cancel every pending timer."""
        for draft in list(self._drafts.values()):
            self._close_draft(draft)

    async def aclose(self) -> None:
        """Cancel every timer and wait for in-flight saves to land."""
        self.close_all()
        pending = [t for t in self._inflight.values() if not t.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def _close_draft(self, draft: _Draft) -> None:
        draft.closed = True
        draft.queued = False
        self._cancel_timer(draft)
        if self._drafts.get(draft.segment_id) is draft:
            del self._drafts[draft.segment_id]

    # -------- status --------
    def status(self, segment_id: str) -> Optional[DraftStatus]:
        draft = self._drafts.get(segment_id)
        if draft is not None:
            return self._status_of(draft)
        progress = self._store.get_progress(segment_id)
        if progress is None:
            return None
        return DraftStatus(
            segment_id=segment_id,
            state=DraftState.CLEAN,
            dirty=False,
            progress=progress.progress,
            last_saved=progress.last_saved,
        )

    def is_dirty(self, segment_id: str) -> bool:
        draft = self._drafts.get(segment_id)
        return draft is not None and draft.revision != draft.saved_revision

    def draft_text(self, segment_id: str) -> Optional[str]:
        draft = self._drafts.get(segment_id)
        return draft.text if draft else None

    def _status_of(self, draft: _Draft) -> DraftStatus:
        progress = self._store.get_progress(draft.segment_id)
        return DraftStatus(
            segment_id=draft.segment_id,
            state=draft.state,
            dirty=draft.revision != draft.saved_revision,
            progress=progress.progress if progress else PROGRESS_EMPTY,
            last_saved=progress.last_saved if progress else None,
            last_error=draft.last_error,
        )

    # -------- saving --------
    async def flush(self, segment_id: str) -> None:
        """Wait until no save is in flight for the segment (queued follow-ups included)."""
        while True:
            task = self._inflight.get(segment_id)
            if task is None or task.done():
                return
            await asyncio.shield(task)

    def _restart_timer(self, draft: _Draft) -> None:
        self._cancel_timer(draft)
        draft.timer = self._scheduler.call_later(self._delay, lambda: self._on_timer(draft))

    @staticmethod
    def _cancel_timer(draft: _Draft) -> None:
        if draft.timer is not None:
            draft.timer.cancel()
            draft.timer = None

    def _on_timer(self, draft: _Draft) -> None:
        draft.timer = None
        if draft.closed:
            return
        task = self._inflight.get(draft.segment_id)
        if task is not None and not task.done():
            draft.queued = True
            return
        self._inflight[draft.segment_id] = asyncio.get_running_loop().create_task(self._drain(draft))

    async def _drain(self, draft: _Draft) -> None:
        try:
            while True:
                draft.queued = False
                await self._save_once(draft)
                if not draft.queued or draft.closed:
                    return
        finally:
            if self._inflight.get(draft.segment_id) is asyncio.current_task():
                del self._inflight[draft.segment_id]

    async def _save_once(self, draft: _Draft) -> None:
        revision = draft.revision
        text = draft.text
        draft.state = DraftState.SAVING
        self._notify(draft)
        try:
            await self._engine.save_draft(draft.user_id, draft.segment_id, text)
        except PersistenceFailure as exc:
            self._save_failed(draft, exc, retry=True)
            return
        except WorkflowError as exc:
            self._save_failed(draft, exc, retry=False)
            return

        draft.saved_revision = max(draft.saved_revision, revision)
        draft.last_error = None
        draft.state = DraftState.CLEAN if draft.revision == revision else DraftState.DIRTY
        self._record_progress(draft.segment_id, PROGRESS_DRAFTED if text.strip() else PROGRESS_EMPTY)
        self._notify(draft)

    def _save_failed(self, draft: _Draft, exc: WorkflowError, retry: bool) -> None:
        logger.warning("[autosave] save of %s failed: %s", draft.segment_id, exc.message)
        draft.state = DraftState.DIRTY
        draft.last_error = exc
        if retry and draft.timer is None and not draft.closed:
            self._restart_timer(draft)
        self._notify(draft)

    def _record_progress(self, segment_id: str, value: int) -> None:
        current = self._store.get_progress(segment_id)
        progress = max(current.progress, value) if current else value
        self._store.put_progress(TranscriptionProgress(
            segment_id=segment_id,
            progress=progress,
            last_saved=self._engine.now(),
            auto_save_enabled=current.auto_save_enabled if current else True,
        ))
