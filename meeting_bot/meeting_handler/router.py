"""
Join Executor Router

Routes meetings to the join executor for their platform and keeps the
join handles of live meetings so any bot can leave them later.
"""

from __future__ import annotations

import asyncio
from typing import Dict, Iterable, List, Optional

from meeting_bot.config import BrowserSettings
from meeting_bot.core.exceptions import UnsupportedPlatform
from meeting_bot.core.logging import get_logger
from meeting_bot.domain.models import BotSettings, MeetingInfo, MeetingPlatform
from .base import JoinExecutor, JoinHandle
from .browser import BrowserManager
from .meet_handler import MeetMeetingHandler
from .teams_meeting_handler import TeamsMeetingHandler
from .zoom_meeting_handler import ZoomMeetingHandler

logger = get_logger("join_router")


class JoinExecutorRouter:
    """
    Platform -> executor lookup table plus session -> handle registry.

    Adding a platform means registering an executor; nothing else changes.
    """

    def __init__(self, executors: Iterable[JoinExecutor] = ()):
        self._executors: Dict[MeetingPlatform, JoinExecutor] = {}
        self._handles: Dict[str, JoinHandle] = {}
        for executor in executors:
            self.register(executor)

    def register(self, executor: JoinExecutor) -> None:
        self._executors[executor.platform] = executor

    @property
    def platforms(self) -> List[MeetingPlatform]:
        return list(self._executors)

    def executor_for(self, platform: MeetingPlatform) -> JoinExecutor:
        """
        Get the executor for a platform.

        Raises:
            UnsupportedPlatform: If no executor is registered for it.
        """
        executor = self._executors.get(platform)
        if executor is None:
            raise UnsupportedPlatform(platform)
        return executor

    async def join(self, meeting: MeetingInfo, settings: BotSettings, session_id: str) -> JoinHandle:
        """Join a meeting and remember the handle under the session id."""
        executor = self.executor_for(meeting.platform)
        logger.info(
            f"Joining meeting: title='{meeting.title}', "
            f"platform='{meeting.platform.value}', session={session_id}"
        )
        handle = await executor.join(meeting, settings)
        self._handles[session_id] = handle
        return handle

    def get_handle(self, session_id: str) -> Optional[JoinHandle]:
        return self._handles.get(session_id)

    @property
    def active_handles(self) -> Dict[str, JoinHandle]:
        return dict(self._handles)

    async def leave(self, session_id: str) -> bool:
        """
        Leave the meeting joined for a session.

        Returns:
            True if a handle was found and released.
        """
        handle = self._handles.pop(session_id, None)
        if handle is None:
            return False
        await handle.leave()
        return True

    async def leave_all(self) -> None:
        """Leave every tracked meeting (used at process shutdown)."""
        session_ids = list(self._handles)
        if not session_ids:
            return
        logger.info(f"Leaving {len(session_ids)} meeting(s)")
        results = await asyncio.gather(
            *(self.leave(session_id) for session_id in session_ids),
            return_exceptions=True,
        )
        for session_id, result in zip(session_ids, results):
            if isinstance(result, Exception):
                logger.error(f"Failed to leave meeting for session {session_id}: {result}")


def create_default_router(browser: BrowserManager, settings: BrowserSettings) -> JoinExecutorRouter:
    """Router with the Playwright executors for Zoom, Teams and Google Meet."""
    return JoinExecutorRouter([
        ZoomMeetingHandler(browser, settings),
        TeamsMeetingHandler(browser, settings),
        MeetMeetingHandler(browser, settings),
    ])
