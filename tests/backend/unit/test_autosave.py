"""
Unit tests for services.autosave (AutoSaveController).
Timers run on the ManualScheduler; the event loop only runs the save tasks.
"""
import asyncio

import pytest

from scribeflow.core.errors import ValidationError
from scribeflow.services.autosave import (
    PROGRESS_DRAFTED,
    PROGRESS_EMPTY,
    PROGRESS_SUBMITTED,
    DraftState,
)
from scribeflow.services.entities import SegmentStatus
from scribeflow.services.persistence import MemorySegmentSink


pytestmark = pytest.mark.asyncio


class BlockingSink(MemorySegmentSink):
    """Holds every save until `release` is set, once `block` is switched on."""

    def __init__(self):
        super().__init__()
        self.block = False
        self.release = asyncio.Event()

    async def save(self, segment):
        if self.block:
            await self.release.wait()
        return await super().save(segment)


class FlakySink(MemorySegmentSink):
    """Fails the next `failures` saves, then behaves."""

    def __init__(self):
        super().__init__()
        self.failures = 0

    async def save(self, segment):
        if self.failures:
            self.failures -= 1
            return False
        return await super().save(segment)


async def _settle():
    """Let freshly created save tasks reach their first await."""
    for _ in range(3):
        await asyncio.sleep(0)


def _texts(sink, segment_id):
    return [s.transcription for s in sink.calls if s.id == segment_id]


class TestDebounce:
    """Tests for the trailing debounce."""

    async def test_burst_of_edits_saves_once_with_last_text(self, services, seed_batch, scheduler, sink):
        [seg] = await seed_batch(1)
        autosave = services.autosave
        await autosave.open("w1", seg.id)
        before = len(sink.calls)

        autosave.on_edit("w1", seg.id, "ا")
        scheduler.advance(1.0)
        autosave.on_edit("w1", seg.id, "اه")
        scheduler.advance(0.5)
        autosave.on_edit("w1", seg.id, "اهلا")
        assert scheduler.advance(1.9) == 0
        assert len(sink.calls) == before

        assert scheduler.advance(0.1) == 1
        await autosave.flush(seg.id)
        assert _texts(sink, seg.id)[before:] == ["اهلا"]
        assert services.store.get_segment(seg.id).transcription == "اهلا"
        status = autosave.status(seg.id)
        assert status.state == DraftState.CLEAN
        assert status.dirty is False
        assert status.last_saved is not None

    async def test_edit_is_synchronous_and_marks_dirty(self, services, seed_batch, scheduler):
        [seg] = await seed_batch(1)
        await services.autosave.open("w1", seg.id)
        status = services.autosave.on_edit("w1", seg.id, "text")
        assert status.state == DraftState.DIRTY
        assert services.autosave.is_dirty(seg.id) is True
        assert services.autosave.draft_text(seg.id) == "text"
        assert services.store.get_segment(seg.id).transcription == ""
        assert scheduler.pending() == 1

    async def test_single_timer_per_draft(self, services, seed_batch, scheduler):
        [seg] = await seed_batch(1)
        await services.autosave.open("w1", seg.id)
        for text in ("a", "ab", "abc"):
            services.autosave.on_edit("w1", seg.id, text)
        assert scheduler.pending() == 1

    async def test_edit_without_open_starts_a_session(self, services, seed_batch, scheduler, sink):
        [seg] = await seed_batch(1)
        services.autosave.on_edit("w1", seg.id, "نص")
        scheduler.advance(2.0)
        await services.autosave.flush(seg.id)
        assert services.store.get_segment(seg.id).status == SegmentStatus.IN_PROGRESS


class TestInFlightSaves:
    """At most one save in flight; a timer firing meanwhile queues one follow-up."""

    async def test_timer_during_save_queues_one_follow_up(self, services, seed_batch, scheduler):
        blocking = BlockingSink()
        services.engine._sink = blocking
        [seg] = await seed_batch(1)
        autosave = services.autosave
        await autosave.open("w1", seg.id)
        blocking.block = True

        autosave.on_edit("w1", seg.id, "a")
        scheduler.advance(2.0)
        await _settle()
        assert autosave.status(seg.id).state == DraftState.SAVING

        autosave.on_edit("w1", seg.id, "ab")
        scheduler.advance(2.0)
        autosave.on_edit("w1", seg.id, "abc")
        scheduler.advance(2.0)
        await _settle()

        blocking.release.set()
        await autosave.flush(seg.id)
        assert _texts(blocking, seg.id)[-2:] == ["a", "abc"]
        assert "ab" not in _texts(blocking, seg.id)
        assert autosave.status(seg.id).state == DraftState.CLEAN

    async def test_close_lets_in_flight_save_finish(self, services, seed_batch, scheduler):
        blocking = BlockingSink()
        services.engine._sink = blocking
        [seg] = await seed_batch(1)
        await services.autosave.open("w1", seg.id)
        blocking.block = True

        services.autosave.on_edit("w1", seg.id, "kept")
        scheduler.advance(2.0)
        await _settle()
        services.autosave.on_edit("w1", seg.id, "dropped")
        closing = services.autosave.close(seg.id)
        assert closing.dirty is True
        assert scheduler.pending() == 0

        blocking.release.set()
        await services.autosave.flush(seg.id)
        assert services.store.get_segment(seg.id).transcription == "kept"
        scheduler.advance(10.0)
        await _settle()
        assert services.store.get_segment(seg.id).transcription == "kept"

    async def test_aclose_waits_for_in_flight_saves(self, services, seed_batch, scheduler):
        blocking = BlockingSink()
        services.engine._sink = blocking
        [seg] = await seed_batch(1)
        await services.autosave.open("w1", seg.id)
        blocking.block = True

        services.autosave.on_edit("w1", seg.id, "final words")
        scheduler.advance(2.0)
        await _settle()
        closing = asyncio.ensure_future(services.autosave.aclose())
        await _settle()
        assert not closing.done()
        blocking.release.set()
        await closing
        assert services.store.get_segment(seg.id).transcription == "final words"


    async def test_finished_saves_leave_no_task_behind(self, services, seed_batch, scheduler):
        [seg] = await seed_batch(1)
        await services.autosave.open("w1", seg.id)
        services.autosave.on_edit("w1", seg.id, "text")
        scheduler.advance(2.0)
        await services.autosave.flush(seg.id)
        await _settle()
        assert seg.id not in services.autosave._inflight


class TestCloseUser:
    """Ending one user's session cancels only that user's drafts."""

    async def test_close_user_cancels_own_timers_only(self, services, seed_batch, scheduler):
        mine, theirs = await seed_batch(2, workers=("w1", "w2"))
        autosave = services.autosave
        await autosave.open("w1", mine.id)
        await autosave.open("w2", theirs.id)
        autosave.on_edit("w1", mine.id, "unsaved")
        autosave.on_edit("w2", theirs.id, "saved later")
        assert scheduler.pending() == 2

        assert autosave.close_user("w1") == 1
        assert scheduler.pending() == 1
        scheduler.advance(2.0)
        await autosave.flush(theirs.id)
        assert services.store.get_segment(mine.id).transcription == ""
        assert services.store.get_segment(theirs.id).transcription == "saved later"

    async def test_close_user_lets_in_flight_save_finish(self, services, seed_batch, scheduler):
        blocking = BlockingSink()
        services.engine._sink = blocking
        [seg] = await seed_batch(1)
        await services.autosave.open("w1", seg.id)
        blocking.block = True

        services.autosave.on_edit("w1", seg.id, "landing")
        scheduler.advance(2.0)
        await _settle()
        assert services.autosave.close_user("w1") == 1
        blocking.release.set()
        await services.autosave.flush(seg.id)
        assert services.store.get_segment(seg.id).transcription == "landing"


class TestSaveFailures:
    """Failed saves keep the draft dirty; only persistence failures retry."""

    async def test_persistence_failure_retries_after_delay(self, services, seed_batch, scheduler):
        flaky = FlakySink()
        services.engine._sink = flaky
        [seg] = await seed_batch(1)
        autosave = services.autosave
        await autosave.open("w1", seg.id)

        flaky.failures = 1
        autosave.on_edit("w1", seg.id, "retry me")
        scheduler.advance(2.0)
        await autosave.flush(seg.id)
        status = autosave.status(seg.id)
        assert status.dirty is True
        assert status.last_error.code == "PERSISTENCE_FAILED"
        assert services.store.get_segment(seg.id).transcription == ""
        assert scheduler.pending() == 1

        scheduler.advance(2.0)
        await autosave.flush(seg.id)
        status = autosave.status(seg.id)
        assert status.dirty is False
        assert status.last_error is None
        assert services.store.get_segment(seg.id).transcription == "retry me"

    async def test_authorization_failure_is_not_retried(self, services, seed_batch, scheduler, roster):
        [seg] = await seed_batch(1)
        autosave = services.autosave
        await autosave.open("w1", seg.id)
        roster.remove("w1")

        autosave.on_edit("w1", seg.id, "too late")
        scheduler.advance(2.0)
        await autosave.flush(seg.id)
        status = autosave.status(seg.id)
        assert status.dirty is True
        assert status.last_error.code == "FORBIDDEN"
        assert scheduler.pending() == 0
        assert services.store.get_segment(seg.id).transcription == ""


class TestComplete:
    """complete() bypasses the debounce."""

    async def test_complete_submits_latest_draft_immediately(self, services, seed_batch, scheduler, sink):
        [seg] = await seed_batch(1)
        autosave = services.autosave
        await autosave.open("w1", seg.id)
        autosave.on_edit("w1", seg.id, "نص")

        done = await autosave.complete("w1", seg.id)
        assert done.status == SegmentStatus.COMPLETED
        assert done.transcription == "نص"
        assert scheduler.pending() == 0
        assert sink.snapshots[seg.id].status == SegmentStatus.COMPLETED
        status = autosave.status(seg.id)
        assert status.progress == PROGRESS_SUBMITTED
        assert status.dirty is False

    async def test_complete_waits_for_in_flight_save(self, services, seed_batch, scheduler):
        blocking = BlockingSink()
        services.engine._sink = blocking
        [seg] = await seed_batch(1)
        autosave = services.autosave
        await autosave.open("w1", seg.id)
        blocking.block = True

        autosave.on_edit("w1", seg.id, "first")
        scheduler.advance(2.0)
        await _settle()
        autosave.on_edit("w1", seg.id, "first and second")
        completing = asyncio.ensure_future(autosave.complete("w1", seg.id))
        await _settle()
        assert not completing.done()

        blocking.release.set()
        done = await completing
        assert done.transcription == "first and second"
        assert _texts(blocking, seg.id)[-2:] == ["first", "first and second"]

    async def test_empty_submission_rearms_timer(self, services, seed_batch, scheduler):
        [seg] = await seed_batch(1)
        autosave = services.autosave
        await autosave.open("w1", seg.id)
        autosave.on_edit("w1", seg.id, "   ")

        with pytest.raises(ValidationError) as exc:
            await autosave.complete("w1", seg.id)
        assert exc.value.code == "EMPTY_TRANSCRIPTION"
        assert scheduler.pending() == 1
        assert autosave.status(seg.id).last_error.code == "EMPTY_TRANSCRIPTION"
        assert services.store.get_segment(seg.id).status == SegmentStatus.IN_PROGRESS


class TestProgressAndStatus:
    """Advisory progress and the status listener feed."""

    async def test_progress_moves_forward(self, services, seed_batch, scheduler):
        [seg] = await seed_batch(1)
        autosave = services.autosave
        assert autosave.status(seg.id) is None

        await autosave.open("w1", seg.id)
        assert autosave.status(seg.id).progress == PROGRESS_EMPTY

        autosave.on_edit("w1", seg.id, "some words")
        scheduler.advance(2.0)
        await autosave.flush(seg.id)
        assert autosave.status(seg.id).progress == PROGRESS_DRAFTED

        autosave.on_edit("w1", seg.id, "")
        scheduler.advance(2.0)
        await autosave.flush(seg.id)
        assert autosave.status(seg.id).progress == PROGRESS_DRAFTED

        autosave.on_edit("w1", seg.id, "some words again")
        await autosave.complete("w1", seg.id)
        assert autosave.status(seg.id).progress == PROGRESS_SUBMITTED

    async def test_status_survives_close(self, services, seed_batch, scheduler):
        [seg] = await seed_batch(1)
        await services.autosave.open("w1", seg.id)
        services.autosave.on_edit("w1", seg.id, "saved")
        scheduler.advance(2.0)
        await services.autosave.flush(seg.id)
        services.autosave.close(seg.id)

        status = services.autosave.status(seg.id)
        assert status.state == DraftState.CLEAN
        assert status.progress == PROGRESS_DRAFTED
        assert services.autosave.draft_text(seg.id) is None

    async def test_listeners_see_each_state(self, services, seed_batch, scheduler):
        [seg] = await seed_batch(1)
        seen = []
        unsubscribe = services.autosave.subscribe(lambda status: seen.append(status.state))
        await services.autosave.open("w1", seg.id)

        services.autosave.on_edit("w1", seg.id, "text")
        scheduler.advance(2.0)
        await services.autosave.flush(seg.id)
        assert seen == [DraftState.DIRTY, DraftState.SAVING, DraftState.CLEAN]

        unsubscribe()
        services.autosave.on_edit("w1", seg.id, "more")
        assert len(seen) == 3

    async def test_failing_listener_does_not_break_saving(self, services, seed_batch, scheduler):
        [seg] = await seed_batch(1)

        def broken(status):
            raise RuntimeError("indicator gone")

        services.autosave.subscribe(broken)
        await services.autosave.open("w1", seg.id)
        services.autosave.on_edit("w1", seg.id, "text")
        scheduler.advance(2.0)
        await services.autosave.flush(seg.id)
        assert services.store.get_segment(seg.id).transcription == "text"
