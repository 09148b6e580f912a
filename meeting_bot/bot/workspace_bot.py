"""
Workspace Bot.
Polls one workspace's calendar and joins its meetings when they are about to start.
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set

from meeting_bot.calendar.base import CalendarGateway
from meeting_bot.config import Settings, settings as app_settings
from meeting_bot.core.exceptions import (
    CalendarNotConnected,
    CalendarUnavailable,
    DuplicateSession,
    JoinFailed,
    SchedulerError,
    SessionStoreError,
    UnsupportedPlatform,
)
from meeting_bot.core.logging import get_logger
from meeting_bot.domain.models import (
    BotSession,
    BotSettings,
    MeetingInfo,
    SessionStatus,
)
from meeting_bot.meeting_handler.router import JoinExecutorRouter
from meeting_bot.scheduler.poll_scheduler import PollScheduler, ScheduledJob
from meeting_bot.storage.session_store import SessionStore

JOIN_NOT_COMPLETED = "join did not complete"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WorkspaceBot:
    """
    Calendar-polling bot for a single workspace.

    Settings are an immutable snapshot; new settings mean a new bot.
    Only the orchestrator creates bots.
    """

    def __init__(
        self,
        workspace_id: str,
        bot_settings: BotSettings,
        calendar: CalendarGateway,
        store: SessionStore,
        router: JoinExecutorRouter,
        scheduler: PollScheduler,
        clock: Callable[[], datetime] = utc_now,
        settings: Optional[Settings] = None,
    ):
        self.workspace_id = workspace_id
        self.settings = bot_settings
        self._calendar = calendar
        self._store = store
        self._router = router
        self._scheduler = scheduler
        self._clock = clock
        self._app_settings = settings or app_settings
        self._log = get_logger("workspace_bot", workspace_id)

        self._job: Optional[ScheduledJob] = None
        self._shut_down = False
        self._released = False

        # meeting_id -> join task, and the session ids those tasks own
        self._join_tasks: Dict[str, asyncio.Task] = {}
        self._in_flight_sessions: Set[str] = set()

        self.tick_count = 0
        self.last_tick_at: Optional[datetime] = None
        self.last_error: Optional[str] = None

    @property
    def job_id(self) -> str:
        return f"workspace_bot:{self.workspace_id}"

    @property
    def is_running(self) -> bool:
        return self._job is not None and not self._shut_down

    @property
    def in_flight(self) -> List[str]:
        """Meeting ids with a join attempt still running."""
        return list(self._join_tasks)

    async def initialize(self) -> None:
        """
        Check the calendar connection and start polling.

        Raises:
            CalendarNotConnected: The workspace has no calendar integration.
            SchedulerError: The bot was already shut down.
        """
        if self._shut_down:
            raise SchedulerError(f"Bot for workspace {self.workspace_id} is shut down")
        if self._job is not None:
            return

        if not await self._calendar.is_connected(self.workspace_id):
            raise CalendarNotConnected(self.workspace_id)

        interval = self._app_settings.scheduler.poll_interval_seconds
        self._job = self._scheduler.schedule_interval(
            self.job_id,
            self.run_tick,
            seconds=interval,
            name=f"Calendar poll: {self.workspace_id}",
        )
        self._log.info(
            "🔧 Bot initialized "
            f"(poll every {interval}s, join {self.settings.join_before_minutes} min early)"
        )

    async def shutdown(self) -> None:
        """
        Stop polling and wait for in-flight joins.

        Joins that are still running after the grace period are left to finish
        on their own; shutdown returns anyway.
        """
        if self._shut_down:
            return
        self._shut_down = True

        if self._job is not None:
            self._job.cancel()
            self._job = None

        grace = self._app_settings.scheduler.shutdown_grace_seconds
        pending = await self.wait_for_joins(timeout=grace)
        if pending:
            self._log.warning(
                f"{len(pending)} join(s) still pending "
                f"after {grace}s grace period: {', '.join(pending)}"
            )

        self._log.info("🛑 Bot shut down")

    async def release_sessions(self) -> int:
        """
        End this workspace's live sessions after the bot is stopped.

        Active sessions leave their meeting and complete; joining sessions with
        no join task still running fail. Joins still running finish, then
        leave and complete as soon as they are admitted.

        Returns:
            Number of sessions ended.
        """
        self._released = True
        now = self._clock()
        try:
            sessions = self._store.list_active_sessions(self.workspace_id)
        except SessionStoreError as e:
            self._log.error(f"Could not list active sessions to release: {e}")
            return 0

        ended = 0
        for session in sessions:
            if session.status == SessionStatus.ACTIVE:
                await self._complete_session(session, now)
                ended += 1
            elif session.id not in self._in_flight_sessions:
                self._mark_failed(session, JOIN_NOT_COMPLETED)
                ended += 1

        if ended:
            self._log.info(f"Released {ended} session(s)")
        return ended

    async def wait_for_joins(self, timeout: Optional[float] = None) -> List[str]:
        """
        Wait for in-flight join attempts without cancelling them.

        Returns:
            Meeting ids still joining when the timeout expired.
        """
        tasks = list(self._join_tasks.values())
        if not tasks:
            return []
        if timeout is not None and timeout <= 0:
            return self.in_flight
        await asyncio.wait(tasks, timeout=timeout)
        return self.in_flight

    async def run_tick(self) -> None:
        """One calendar poll: start joins for eligible meetings, then time out old sessions."""
        if self._shut_down:
            return

        now = self._clock()
        self.tick_count += 1
        self.last_tick_at = now

        meetings: List[MeetingInfo] = []
        try:
            meetings = await self._calendar.list_upcoming_events(self.workspace_id)
            self.last_error = None
        except CalendarUnavailable as e:
            # Transient; the sweep below still runs
            self.last_error = e.message
            self._log.warning(f"Calendar unavailable ({e.reason}): {e.message}")
        except Exception as e:
            self.last_error = str(e)
            self._log.error(f"Error fetching meetings: {e}")

        if self._shut_down:
            return

        eligible = self._eligible_meetings(meetings, now)
        if eligible:
            if self.settings.auto_join:
                for meeting in eligible:
                    self._start_join(meeting)
            else:
                self._log.debug(f"Auto-join off, not joining {[m.title for m in eligible]}")

        await self._sweep_sessions(now)

    def _eligible_meetings(self, meetings: List[MeetingInfo], now: datetime) -> List[MeetingInfo]:
        """
        Meetings inside their join window that have never had a session.

        A meeting whose join failed keeps its failed session, so it is not
        tried again.
        """
        in_window = [m for m in meetings if m.in_join_window(now, self.settings.join_before)]
        if not in_window:
            return []

        try:
            known_ids = {s.meeting_id for s in self._store.list_sessions(self.workspace_id)}
        except SessionStoreError as e:
            # Without the history a failed meeting would look new; skip joins this tick
            self._log.error(f"Could not list sessions, not joining this tick: {e}")
            return []

        return [
            m for m in in_window
            if m.id not in known_ids and m.id not in self._join_tasks
        ]

    def _start_join(self, meeting: MeetingInfo) -> None:
        task = asyncio.create_task(
            self._join_meeting(meeting),
            name=f"join:{self.workspace_id}:{meeting.id}",
        )
        self._join_tasks[meeting.id] = task
        task.add_done_callback(lambda _t, meeting_id=meeting.id: self._join_tasks.pop(meeting_id, None))

    async def _join_meeting(self, meeting: MeetingInfo) -> None:
        """Create the session and join; every failure stays inside this meeting."""
        try:
            session = self._store.create_session(self.workspace_id, meeting)
        except DuplicateSession:
            self._log.debug(f"Meeting '{meeting.title}' already has an active session, skipping")
            return
        except SessionStoreError as e:
            self._log.error(f"Could not create session for meeting '{meeting.title}': {e}")
            return

        self._log.info(f"🎯 Joining meeting: {meeting.title} (session {session.id})")
        self._in_flight_sessions.add(session.id)
        try:
            await self._router.join(meeting, self.settings, session.id)
        except JoinFailed as e:
            self._log.warning(f"Failed to join meeting {meeting.title}: {e.reason}: {e.message}")
            self._mark_failed(session, f"{e.reason}: {e.message}")
        except UnsupportedPlatform as e:
            self._log.warning(f"Failed to join meeting {meeting.title}: {e.message}")
            self._mark_failed(session, f"unsupported_platform: {e.platform}")
        except Exception as e:
            self._log.error(f"Failed to join meeting {meeting.title}: {e}")
            self._mark_failed(session, f"unknown: {e}")
        else:
            await self._mark_active(session, meeting)
        finally:
            self._in_flight_sessions.discard(session.id)

    async def _mark_active(self, session: BotSession, meeting: MeetingInfo) -> None:
        try:
            self._store.update_status(session.id, SessionStatus.ACTIVE, join_time=self._clock())
        except SessionStoreError as e:
            # Don't stay in a meeting nothing records
            self._log.error(f"Could not mark session {session.id} active, leaving meeting: {e}")
            try:
                await self._router.leave(session.id)
            except Exception as leave_error:
                self._log.error(f"Error leaving meeting '{meeting.title}': {leave_error}")
            return
        self._log.info(f"✅ Joined meeting: {meeting.title} (session {session.id})")

        if self._released:
            # The workspace was stopped while this join was still running
            await self._complete_session(session, self._clock())

    def _mark_failed(self, session: BotSession, error_message: str) -> None:
        try:
            self._store.update_status(
                session.id,
                SessionStatus.FAILED,
                end_time=self._clock(),
                error_message=error_message,
            )
        except SessionStoreError as e:
            self._log.error(f"Could not record failure for session {session.id}: {e}")

    async def _sweep_sessions(self, now: datetime) -> None:
        """
        Time out sessions whose meeting ended more than leave_after_minutes ago.

        Active sessions complete and leave the meeting. Joining sessions that
        no task here is working on (orphaned by a restart) fail.
        """
        try:
            sessions = self._store.list_active_sessions(self.workspace_id)
        except SessionStoreError as e:
            self._log.error(f"Could not list active sessions: {e}")
            return

        for session in sessions:
            if session.scheduled_end is None:
                continue
            if now <= session.scheduled_end + self.settings.leave_after:
                continue

            if session.status == SessionStatus.ACTIVE:
                await self._complete_session(session, now)
            elif session.id not in self._in_flight_sessions:
                self._log.warning(f"Session {session.id} for '{session.meeting_title}' never finished joining")
                self._mark_failed(session, JOIN_NOT_COMPLETED)

    async def _complete_session(self, session: BotSession, now: datetime) -> None:
        try:
            await self._router.leave(session.id)
        except Exception as e:
            self._log.error(f"Error leaving meeting '{session.meeting_title}': {e}")

        try:
            self._store.update_status(session.id, SessionStatus.COMPLETED, end_time=now)
        except SessionStoreError as e:
            self._log.error(f"Could not complete session {session.id}: {e}")
            return
        self._log.info(f"Meeting ended: {session.meeting_title} (session {session.id} completed)")

    def get_status(self) -> dict:
        """Summary used by the status endpoint."""
        return {
            "workspace_id": self.workspace_id,
            "running": self.is_running,
            "settings": self.settings.model_dump(by_alias=True),
            "tick_count": self.tick_count,
            "last_tick_at": self.last_tick_at.isoformat() if self.last_tick_at else None,
            "last_error": self.last_error,
            "joins_in_flight": self.in_flight,
        }
