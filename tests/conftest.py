"""Shared fixtures for the meeting bot tests.

Provides:
- A controllable clock and a virtual scheduler (tests call run_tick directly
  or drive the scheduled jobs by hand)
- An in-memory calendar gateway and scriptable join executors
- JSON stores under pytest's tmp_path
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

import pytest

from meeting_bot.bot.orchestrator import BotOrchestrator
from meeting_bot.bot.workspace_bot import WorkspaceBot
from meeting_bot.calendar.base import CalendarGateway
from meeting_bot.config import SchedulerSettings, Settings
from meeting_bot.core.exceptions import SchedulerError
from meeting_bot.domain.models import BotSettings, MeetingInfo, MeetingPlatform
from meeting_bot.meeting_handler.base import JoinExecutor, JoinHandle
from meeting_bot.meeting_handler.router import JoinExecutorRouter
from meeting_bot.scheduler.poll_scheduler import ScheduledJob
from meeting_bot.storage.session_store import JsonSessionStore
from meeting_bot.storage.settings_store import IntegrationStore, WorkspaceSettingsStore

NOW = datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc)

MEETING_URLS = {
    MeetingPlatform.ZOOM: "https://us02web.zoom.us/j/81234567890?pwd=abc123",
    MeetingPlatform.TEAMS: "https://teams.microsoft.com/l/meetup-join/19%3ameeting_abc",
    MeetingPlatform.GOOGLE_MEET: "https://meet.google.com/abc-defg-hij",
}


# ── Time and scheduling ─────────────────────────────────────────────────────


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class VirtualScheduler:
    """Same interface as PollScheduler, but jobs only run via run_pending()."""

    def __init__(self):
        self.jobs: Dict[str, dict] = {}
        self.is_running = True

    def schedule_interval(self, job_id, func, seconds, name=None) -> ScheduledJob:
        if job_id in self.jobs:
            raise SchedulerError(f"Job already scheduled: {job_id}")
        self.jobs[job_id] = {"func": func, "seconds": seconds, "name": name or job_id}
        return ScheduledJob(job_id, self._remove)

    def _remove(self, job_id: str) -> None:
        self.jobs.pop(job_id, None)

    async def run_pending(self) -> None:
        """Run every scheduled job once (one interval elapsing)."""
        for job in list(self.jobs.values()):
            await job["func"]()

    def get_jobs(self) -> List[dict]:
        return [
            {"id": job_id, "name": job["name"], "next_run": None, "trigger": f"interval[{job['seconds']}s]"}
            for job_id, job in self.jobs.items()
        ]


# ── Collaborators ───────────────────────────────────────────────────────────


class FakeCalendar(CalendarGateway):
    """Calendar gateway backed by dicts."""

    def __init__(self):
        self.connected: set = set()
        self.meetings: Dict[str, List[MeetingInfo]] = {}
        self.error: Optional[Exception] = None
        self.fetch_count = 0

    async def is_connected(self, workspace_id: str) -> bool:
        return workspace_id in self.connected

    async def list_upcoming_events(self, workspace_id: str) -> List[MeetingInfo]:
        self.fetch_count += 1
        if self.error is not None:
            raise self.error
        return list(self.meetings.get(workspace_id, []))


class FakeHandle(JoinHandle):
    def __init__(self, meeting: MeetingInfo):
        super().__init__(meeting)
        self.release_count = 0

    async def _release(self) -> None:
        self.release_count += 1


class FakeExecutor(JoinExecutor):
    """
    Join executor whose outcome is scripted per meeting id.

    failures: meeting_id -> exception to raise
    gates: meeting_id -> asyncio.Event the join waits on
    """

    def __init__(self, platform: MeetingPlatform):
        self.platform = platform
        self.failures: Dict[str, Exception] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.joined: List[str] = []
        self.handles: List[FakeHandle] = []

    async def join(self, meeting: MeetingInfo, settings: BotSettings) -> JoinHandle:
        gate = self.gates.get(meeting.id)
        if gate is not None:
            await gate.wait()
        if meeting.id in self.failures:
            raise self.failures[meeting.id]
        self.joined.append(meeting.id)
        handle = FakeHandle(meeting)
        self.handles.append(handle)
        return handle


# ── Fixtures ────────────────────────────────────────────────────────────────


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler() -> VirtualScheduler:
    return VirtualScheduler()


@pytest.fixture
def calendar() -> FakeCalendar:
    fake = FakeCalendar()
    fake.connected.add("ws-1")
    return fake


@pytest.fixture
def executors() -> Dict[MeetingPlatform, FakeExecutor]:
    return {platform: FakeExecutor(platform) for platform in MeetingPlatform}


@pytest.fixture
def join_router(executors) -> JoinExecutorRouter:
    return JoinExecutorRouter(executors.values())


@pytest.fixture
def store(tmp_path) -> JsonSessionStore:
    return JsonSessionStore(str(tmp_path / "sessions.json"))


@pytest.fixture
def settings_store(tmp_path) -> WorkspaceSettingsStore:
    return WorkspaceSettingsStore(str(tmp_path / "workspace_settings.json"))


@pytest.fixture
def integrations(tmp_path) -> IntegrationStore:
    return IntegrationStore(str(tmp_path / "integrations.json"))


@pytest.fixture
def app_settings() -> Settings:
    return Settings(
        scheduler=SchedulerSettings(poll_interval_seconds=60, shutdown_grace_seconds=0.2),
        log_to_file=False,
        timezone="UTC",
    )


@pytest.fixture
def make_meeting(clock) -> Callable[..., MeetingInfo]:
    """Build a meeting starting `starts_in` from the fake clock's now."""

    def _make(
        meeting_id: str = "evt-1",
        starts_in: timedelta = timedelta(seconds=90),
        duration: timedelta = timedelta(minutes=30),
        platform: MeetingPlatform = MeetingPlatform.GOOGLE_MEET,
        title: Optional[str] = None,
    ) -> MeetingInfo:
        start = clock.now + starts_in
        return MeetingInfo(
            id=meeting_id,
            platform=platform,
            url=MEETING_URLS[platform],
            title=title or f"Meeting {meeting_id}",
            start_time=start,
            end_time=start + duration,
        )

    return _make


@pytest.fixture
def make_bot(calendar, store, join_router, scheduler, clock, app_settings):
    """Build a WorkspaceBot wired to the fakes."""

    def _make(workspace_id: str = "ws-1", **settings) -> WorkspaceBot:
        bot_settings = BotSettings(enabled=True, **settings)
        return WorkspaceBot(
            workspace_id,
            bot_settings,
            calendar=calendar,
            store=store,
            router=join_router,
            scheduler=scheduler,
            clock=clock,
            settings=app_settings,
        )

    return _make


@pytest.fixture
def orchestrator(calendar, store, join_router, scheduler, clock, app_settings) -> BotOrchestrator:
    return BotOrchestrator(
        calendar=calendar,
        store=store,
        router=join_router,
        scheduler=scheduler,
        clock=clock,
        settings=app_settings,
    )
