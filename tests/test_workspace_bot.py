"""Tests for WorkspaceBot polling, joining and session time-outs.

Ticks are driven by hand (run_tick or the virtual scheduler) against a fake
clock, so every scenario is deterministic.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from unittest.mock import patch

import pytest

from meeting_bot.core.exceptions import (
    CalendarNotConnected,
    CalendarUnavailable,
    JoinFailed,
    SessionStoreError,
)
from meeting_bot.bot.workspace_bot import WorkspaceBot
from meeting_bot.domain.models import BotSettings, JoinFailureReason, MeetingPlatform, SessionStatus
from meeting_bot.meeting_handler.router import JoinExecutorRouter

from conftest import FakeExecutor


async def _tick(bot) -> None:
    await bot.run_tick()
    await bot.wait_for_joins()


# ── Lifecycle ───────────────────────────────────────────────────────────────


class TestInitializeAndShutdown:

    @pytest.mark.asyncio
    async def test_initialize_schedules_one_poll_job(self, make_bot, scheduler):
        bot = make_bot()

        await bot.initialize()
        await bot.initialize()

        assert list(scheduler.jobs) == ["workspace_bot:ws-1"]
        assert scheduler.jobs["workspace_bot:ws-1"]["seconds"] == 60
        assert bot.is_running

    @pytest.mark.asyncio
    async def test_initialize_requires_calendar(self, make_bot, scheduler):
        bot = make_bot("ws-unconnected")

        with pytest.raises(CalendarNotConnected):
            await bot.initialize()

        assert scheduler.jobs == {}

    @pytest.mark.asyncio
    async def test_shutdown_cancels_job_and_is_idempotent(self, make_bot, scheduler):
        bot = make_bot()
        await bot.initialize()

        await bot.shutdown()
        await bot.shutdown()

        assert scheduler.jobs == {}
        assert not bot.is_running

    @pytest.mark.asyncio
    async def test_no_ticks_after_shutdown(self, make_bot, calendar, make_meeting, store):
        calendar.meetings["ws-1"] = [make_meeting()]
        bot = make_bot()
        await bot.initialize()
        await bot.shutdown()

        await _tick(bot)

        assert calendar.fetch_count == 0
        assert store.list_sessions("ws-1") == []


# ── Joining ─────────────────────────────────────────────────────────────────


class TestJoining:

    @pytest.mark.asyncio
    async def test_meeting_in_window_is_joined(self, make_bot, calendar, executors, make_meeting, store, clock):
        """Meeting starting in 90s with a 2 minute window: joining, then active."""
        meeting = make_meeting(starts_in=timedelta(seconds=90))
        calendar.meetings["ws-1"] = [meeting]
        gate = executors[meeting.platform].gates[meeting.id] = asyncio.Event()
        bot = make_bot(join_before_minutes=2)

        await bot.run_tick()
        await asyncio.sleep(0)

        [session] = store.list_sessions("ws-1")
        assert session.status == SessionStatus.JOINING
        assert bot.in_flight == [meeting.id]

        gate.set()
        await bot.wait_for_joins()

        session = store.get_session(session.id)
        assert session.status == SessionStatus.ACTIVE
        assert session.join_time == clock.now
        assert bot.in_flight == []

    @pytest.mark.asyncio
    async def test_meeting_outside_window_is_not_joined(self, make_bot, calendar, make_meeting, store):
        calendar.meetings["ws-1"] = [make_meeting(starts_in=timedelta(minutes=10))]
        bot = make_bot(join_before_minutes=2)

        await _tick(bot)

        assert store.list_sessions("ws-1") == []

    @pytest.mark.asyncio
    async def test_started_meeting_is_not_joined(self, make_bot, calendar, make_meeting, store):
        calendar.meetings["ws-1"] = [make_meeting(starts_in=timedelta(seconds=-1))]
        bot = make_bot()

        await _tick(bot)

        assert store.list_sessions("ws-1") == []

    @pytest.mark.asyncio
    async def test_failed_join_is_recorded_and_not_retried(
        self, make_bot, calendar, executors, make_meeting, store, clock
    ):
        meeting = make_meeting()
        calendar.meetings["ws-1"] = [meeting]
        executor = executors[meeting.platform]
        executor.failures[meeting.id] = JoinFailed(JoinFailureReason.TIMEOUT, "lobby wait expired")
        bot = make_bot()

        await _tick(bot)
        clock.advance(seconds=30)
        await _tick(bot)

        [session] = store.list_sessions("ws-1")
        assert session.status == SessionStatus.FAILED
        assert session.end_time is not None
        assert session.error_message.startswith("timeout")
        assert executor.joined == []

    @pytest.mark.asyncio
    async def test_unsupported_platform_fails_session(
        self, calendar, make_meeting, store, scheduler, clock, app_settings
    ):
        meeting = make_meeting(platform=MeetingPlatform.TEAMS)
        calendar.meetings["ws-1"] = [meeting]
        bot = WorkspaceBot(
            "ws-1",
            BotSettings(enabled=True),
            calendar=calendar,
            store=store,
            router=JoinExecutorRouter([FakeExecutor(MeetingPlatform.ZOOM)]),
            scheduler=scheduler,
            clock=clock,
            settings=app_settings,
        )

        await _tick(bot)

        [session] = store.list_sessions("ws-1")
        assert session.status == SessionStatus.FAILED
        assert "unsupported_platform" in session.error_message

    @pytest.mark.asyncio
    async def test_auto_join_off_only_logs(self, make_bot, calendar, make_meeting, store):
        calendar.meetings["ws-1"] = [make_meeting()]
        bot = make_bot(auto_join=False)

        await _tick(bot)

        assert store.list_sessions("ws-1") == []

    @pytest.mark.asyncio
    async def test_meetings_in_one_tick_are_joined_concurrently(self, make_bot, calendar, executors, make_meeting, store):
        first = make_meeting("a")
        second = make_meeting("b", platform=MeetingPlatform.ZOOM)
        calendar.meetings["ws-1"] = [first, second]
        gate = executors[first.platform].gates[first.id] = asyncio.Event()
        bot = make_bot()

        await bot.run_tick()
        # Second meeting finishes while the first is still waiting
        pending = await bot.wait_for_joins(timeout=0.05)

        assert pending == [first.id]
        assert executors[MeetingPlatform.ZOOM].joined == [second.id]

        gate.set()
        await bot.wait_for_joins()
        assert {s.status for s in store.list_sessions("ws-1")} == {SessionStatus.ACTIVE}


# ── Duplicate protection ────────────────────────────────────────────────────


class TestNoDuplicateJoins:

    @pytest.mark.asyncio
    async def test_overlapping_ticks_join_once(self, make_bot, calendar, executors, make_meeting, store):
        meeting = make_meeting()
        calendar.meetings["ws-1"] = [meeting]
        gate = executors[meeting.platform].gates[meeting.id] = asyncio.Event()
        bot = make_bot()

        await bot.run_tick()
        await bot.run_tick()
        gate.set()
        await bot.wait_for_joins()

        assert executors[meeting.platform].joined == [meeting.id]
        assert len(store.list_sessions("ws-1")) == 1

    @pytest.mark.asyncio
    async def test_two_bots_share_the_store_guard(self, make_bot, calendar, executors, make_meeting, store):
        """A replacement bot with no memory of the first still cannot join twice."""
        meeting = make_meeting()
        calendar.meetings["ws-1"] = [meeting]
        gate = executors[meeting.platform].gates[meeting.id] = asyncio.Event()
        old_bot, new_bot = make_bot(), make_bot()

        # Both pre-checks pass before either join task runs
        await old_bot.run_tick()
        await new_bot.run_tick()
        gate.set()
        await old_bot.wait_for_joins()
        await new_bot.wait_for_joins()

        assert executors[meeting.platform].joined == [meeting.id]
        assert len(store.list_sessions("ws-1")) == 1


# ── Failure isolation ───────────────────────────────────────────────────────


class TestFailureIsolation:

    @pytest.mark.asyncio
    async def test_calendar_outage_does_not_stop_polling(self, make_bot, calendar, scheduler, make_meeting, store, caplog):
        calendar.error = CalendarUnavailable("ws-1", CalendarUnavailable.RATE_LIMITED)
        bot = make_bot()
        await bot.initialize()

        with caplog.at_level(logging.WARNING, logger="meeting_bot"):
            await scheduler.run_pending()

        assert "[ws-1] Calendar unavailable" in caplog.text
        assert bot.last_error is not None
        assert "workspace_bot:ws-1" in scheduler.jobs

        calendar.error = None
        calendar.meetings["ws-1"] = [make_meeting()]
        await scheduler.run_pending()
        await bot.wait_for_joins()

        assert bot.tick_count == 2
        assert bot.last_error is None
        assert len(store.list_sessions("ws-1")) == 1

    @pytest.mark.asyncio
    async def test_store_failure_is_isolated_to_one_meeting(self, make_bot, calendar, executors, make_meeting, store):
        bad = make_meeting("bad")
        good = make_meeting("good", platform=MeetingPlatform.ZOOM)
        calendar.meetings["ws-1"] = [bad, good]
        real_create = store.create_session

        def flaky_create(workspace_id, meeting, join_time=None):
            if meeting.id == "bad":
                raise SessionStoreError("disk full")
            return real_create(workspace_id, meeting, join_time)

        bot = make_bot()
        with patch.object(store, "create_session", side_effect=flaky_create):
            await _tick(bot)

        [session] = store.list_sessions("ws-1")
        assert session.meeting_id == "good"
        assert session.status == SessionStatus.ACTIVE
        assert executors[bad.platform].joined == []

    @pytest.mark.asyncio
    async def test_unexpected_executor_error_fails_session(self, make_bot, calendar, executors, make_meeting, store):
        meeting = make_meeting()
        calendar.meetings["ws-1"] = [meeting]
        executors[meeting.platform].failures[meeting.id] = RuntimeError("browser crashed")
        bot = make_bot()

        await _tick(bot)

        [session] = store.list_sessions("ws-1")
        assert session.status == SessionStatus.FAILED
        assert "browser crashed" in session.error_message


    @pytest.mark.asyncio
    async def test_history_unavailable_skips_joins(
        self, make_bot, calendar, executors, make_meeting, store, clock
    ):
        """A failed meeting must not look new when the session history can't be read."""
        meeting = make_meeting()
        calendar.meetings["ws-1"] = [meeting]
        executors[meeting.platform].failures[meeting.id] = JoinFailed(JoinFailureReason.TIMEOUT)
        bot = make_bot()
        await _tick(bot)

        clock.advance(seconds=30)
        with patch.object(store, "list_sessions", side_effect=SessionStoreError("disk unavailable")):
            await _tick(bot)

        [session] = store.list_sessions("ws-1")
        assert session.status == SessionStatus.FAILED
        assert bot.in_flight == []


# ── Completion sweep ────────────────────────────────────────────────────────


class TestCompletionSweep:

    @pytest.mark.asyncio
    async def test_active_session_completes_after_leave_after(
        self, make_bot, calendar, executors, make_meeting, store, clock
    ):
        meeting = make_meeting(duration=timedelta(minutes=30))
        calendar.meetings["ws-1"] = [meeting]
        bot = make_bot(leave_after_minutes=5)
        await _tick(bot)
        calendar.meetings["ws-1"] = []

        clock.now = meeting.end_time + timedelta(minutes=5)
        await _tick(bot)
        [session] = store.list_sessions("ws-1")
        assert session.status == SessionStatus.ACTIVE

        clock.advance(seconds=1)
        await _tick(bot)

        session = store.get_session(session.id)
        assert session.status == SessionStatus.COMPLETED
        assert session.end_time == clock.now
        assert executors[meeting.platform].handles[0].has_left

    @pytest.mark.asyncio
    async def test_sweep_runs_during_calendar_outage(self, make_bot, calendar, make_meeting, store, clock):
        meeting = make_meeting()
        calendar.meetings["ws-1"] = [meeting]
        bot = make_bot(leave_after_minutes=0)
        await _tick(bot)

        calendar.error = CalendarUnavailable("ws-1", CalendarUnavailable.NETWORK)
        clock.now = meeting.end_time + timedelta(minutes=1)
        await _tick(bot)

        [session] = store.list_sessions("ws-1")
        assert session.status == SessionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_orphaned_joining_session_fails(self, make_bot, make_meeting, store, clock):
        """A joining session left behind by a crashed process is closed out."""
        meeting = make_meeting()
        orphan = store.create_session("ws-1", meeting)
        bot = make_bot(leave_after_minutes=5)

        clock.now = meeting.end_time + timedelta(minutes=6)
        await _tick(bot)

        session = store.get_session(orphan.id)
        assert session.status == SessionStatus.FAILED
        assert session.error_message == "join did not complete"

    @pytest.mark.asyncio
    async def test_other_workspaces_are_untouched(self, make_bot, make_meeting, store, clock):
        meeting = make_meeting()
        other = store.create_session("ws-2", meeting)
        bot = make_bot("ws-1")

        clock.now = meeting.end_time + timedelta(hours=1)
        await _tick(bot)

        assert store.get_session(other.id).status == SessionStatus.JOINING


# ── Graceful shutdown ───────────────────────────────────────────────────────


class TestGracefulShutdown:

    @pytest.mark.asyncio
    async def test_shutdown_waits_for_in_flight_join(self, make_bot, calendar, executors, make_meeting, store):
        meeting = make_meeting()
        calendar.meetings["ws-1"] = [meeting]
        gate = executors[meeting.platform].gates[meeting.id] = asyncio.Event()
        bot = make_bot()
        await bot.initialize()
        await bot.run_tick()

        asyncio.get_running_loop().call_later(0.05, gate.set)
        await bot.shutdown()

        [session] = store.list_sessions("ws-1")
        assert session.status == SessionStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_shutdown_gives_up_after_grace_period(
        self, make_bot, calendar, executors, make_meeting, store, caplog
    ):
        meeting = make_meeting()
        calendar.meetings["ws-1"] = [meeting]
        gate = executors[meeting.platform].gates[meeting.id] = asyncio.Event()
        bot = make_bot()
        await bot.initialize()
        await bot.run_tick()

        with caplog.at_level(logging.WARNING, logger="meeting_bot"):
            await bot.shutdown()

        assert "still pending" in caplog.text
        assert bot.in_flight == [meeting.id]

        # The join was not cancelled and still finishes
        gate.set()
        await bot.wait_for_joins()
        [session] = store.list_sessions("ws-1")
        assert session.status == SessionStatus.ACTIVE


# ── Releasing sessions on stop ──────────────────────────────────────────────


class TestReleaseSessions:

    @pytest.mark.asyncio
    async def test_active_session_leaves_and_completes(
        self, make_bot, calendar, executors, make_meeting, store, join_router, clock
    ):
        meeting = make_meeting()
        calendar.meetings["ws-1"] = [meeting]
        bot = make_bot()
        await _tick(bot)
        await bot.wait_for_joins()
        [handle] = executors[meeting.platform].handles

        await bot.shutdown()
        released = await bot.release_sessions()

        [session] = store.list_sessions("ws-1")
        assert released == 1
        assert session.status == SessionStatus.COMPLETED
        assert session.end_time == clock.now
        assert handle.has_left
        assert join_router.active_handles == {}

    @pytest.mark.asyncio
    async def test_orphaned_joining_session_fails(self, make_bot, make_meeting, store):
        orphan = store.create_session("ws-1", make_meeting())
        bot = make_bot()

        await bot.shutdown()
        await bot.release_sessions()

        session = store.get_session(orphan.id)
        assert session.status == SessionStatus.FAILED
        assert session.error_message == "join did not complete"

    @pytest.mark.asyncio
    async def test_join_admitted_after_release_leaves_at_once(
        self, make_bot, calendar, executors, make_meeting, store, join_router
    ):
        meeting = make_meeting()
        calendar.meetings["ws-1"] = [meeting]
        gate = executors[meeting.platform].gates[meeting.id] = asyncio.Event()
        bot = make_bot()
        await _tick(bot)

        await bot.shutdown()
        assert await bot.release_sessions() == 0

        gate.set()
        await bot.wait_for_joins()

        [session] = store.list_sessions("ws-1")
        assert session.status == SessionStatus.COMPLETED
        assert executors[meeting.platform].handles[0].has_left
        assert join_router.active_handles == {}

    @pytest.mark.asyncio
    async def test_other_workspaces_keep_their_sessions(self, make_bot, make_meeting, store):
        other = store.create_session("ws-2", make_meeting())
        bot = make_bot()

        await bot.shutdown()
        await bot.release_sessions()

        assert store.get_session(other.id).status == SessionStatus.JOINING
