"""
Bot Orchestrator.
Registry of running workspace bots; the only place bots are created or stopped.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Callable, Dict, List, Optional

from meeting_bot.calendar.base import CalendarGateway
from meeting_bot.config import Settings, settings as app_settings
from meeting_bot.core.exceptions import ConfigurationError
from meeting_bot.core.logging import get_logger
from meeting_bot.domain.models import BotSession, BotSettings
from meeting_bot.meeting_handler.router import JoinExecutorRouter
from meeting_bot.scheduler.poll_scheduler import PollScheduler
from meeting_bot.storage.session_store import SessionStore
from meeting_bot.storage.settings_store import WorkspaceSettingsStore
from .workspace_bot import WorkspaceBot, utc_now

logger = get_logger("orchestrator")


class BotOrchestrator:
    """
    Starts, replaces and stops workspace bots.

    At most one bot runs per workspace. Start/stop calls for the same
    workspace are serialised by a per-workspace lock; different workspaces
    never wait on each other.
    """

    def __init__(
        self,
        calendar: CalendarGateway,
        store: SessionStore,
        router: JoinExecutorRouter,
        scheduler: PollScheduler,
        clock: Callable[[], datetime] = utc_now,
        settings: Optional[Settings] = None,
    ):
        self._calendar = calendar
        self._store = store
        self._router = router
        self._scheduler = scheduler
        self._clock = clock
        self._settings = settings or app_settings

        self._bots: Dict[str, WorkspaceBot] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def _workspace_lock(self, workspace_id: str) -> AsyncIterator[None]:
        """
        Serialise start/stop for one workspace.

        The lock is dropped once no caller holds or waits on it and the
        workspace has no bot.
        """
        lock = self._locks.get(workspace_id)
        if lock is None:
            lock = self._locks[workspace_id] = asyncio.Lock()
        self._lock_users[workspace_id] = self._lock_users.get(workspace_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[workspace_id] -= 1
            if self._lock_users[workspace_id] == 0:
                del self._lock_users[workspace_id]
                if workspace_id not in self._bots:
                    del self._locks[workspace_id]

    @staticmethod
    def _require_workspace(workspace_id: str) -> None:
        if not workspace_id or not workspace_id.strip():
            raise ConfigurationError("workspaceId is required")

    async def start(self, workspace_id: str, bot_settings: BotSettings) -> None:
        """
        Start (or restart with new settings) the bot for a workspace.

        Disabled settings stop the bot instead. An existing bot is drained and
        shut down before the new one is initialised.

        Raises:
            ConfigurationError: Missing workspace id.
            CalendarNotConnected: The workspace has no calendar integration;
                the workspace is left without a bot.
        """
        self._require_workspace(workspace_id)
        if not bot_settings.enabled:
            await self.stop(workspace_id)
            return

        async with self._workspace_lock(workspace_id):
            existing = self._bots.pop(workspace_id, None)
            if existing is not None:
                logger.info(f"Replacing bot for workspace {workspace_id}")
                await existing.shutdown()

            bot = WorkspaceBot(
                workspace_id,
                bot_settings,
                calendar=self._calendar,
                store=self._store,
                router=self._router,
                scheduler=self._scheduler,
                clock=self._clock,
                settings=self._settings,
            )
            await bot.initialize()
            self._bots[workspace_id] = bot

        logger.info(f"🤖 Meeting bot started for workspace: {workspace_id}")

    async def stop(self, workspace_id: str) -> bool:
        """
        Stop the workspace's bot and end its live sessions.

        Meetings the bot is in are left and their sessions completed; session
        history stays in the store.

        Returns:
            True if a bot was running, False if there was nothing to stop.
        """
        self._require_workspace(workspace_id)
        async with self._workspace_lock(workspace_id):
            bot = self._bots.pop(workspace_id, None)
            if bot is None:
                return False
            await bot.shutdown()
            await bot.release_sessions()

        logger.info(f"⏹️ Meeting bot stopped for workspace: {workspace_id}")
        return True

    def list_sessions(self, workspace_id: str, active_only: bool = False) -> List[BotSession]:
        """Stored sessions for a workspace, newest first; no running bot needed."""
        self._require_workspace(workspace_id)
        if active_only:
            return self._store.list_active_sessions(workspace_id)
        return self._store.list_sessions(workspace_id)

    def list_active_sessions(self, workspace_id: str) -> List[BotSession]:
        return self.list_sessions(workspace_id, active_only=True)

    def get_bot(self, workspace_id: str) -> Optional[WorkspaceBot]:
        return self._bots.get(workspace_id)

    def running_workspaces(self) -> List[str]:
        return sorted(self._bots)

    def get_status(self) -> dict:
        """Running bots, live joins and scheduled jobs."""
        return {
            "running": self._scheduler.is_running,
            "bots": [self._bots[ws].get_status() for ws in self.running_workspaces()],
            "active_joins": [
                dict(handle.to_dict(), session_id=session_id)
                for session_id, handle in self._router.active_handles.items()
            ],
            "jobs": self._scheduler.get_jobs(),
        }

    async def restore(self, settings_store: WorkspaceSettingsStore) -> int:
        """
        Start a bot for every workspace whose stored settings are enabled.

        Failures are logged and skipped.

        Returns:
            Number of bots started.
        """
        started = 0
        for workspace_id, bot_settings in settings_store.enabled_workspaces().items():
            try:
                await self.start(workspace_id, bot_settings)
                started += 1
            except Exception as e:
                logger.error(f"Could not restore bot for workspace {workspace_id}: {e}")

        logger.info(f"Restored {started} workspace bot(s)")
        return started

    async def shutdown_all(self) -> None:
        """Stop every running bot."""
        workspace_ids = self.running_workspaces()
        if not workspace_ids:
            return
        logger.info(f"Stopping {len(workspace_ids)} workspace bot(s)...")
        results = await asyncio.gather(
            *(self.stop(ws) for ws in workspace_ids),
            return_exceptions=True,
        )
        for workspace_id, result in zip(workspace_ids, results):
            if isinstance(result, Exception):
                logger.error(f"Error stopping bot for workspace {workspace_id}: {result}")
