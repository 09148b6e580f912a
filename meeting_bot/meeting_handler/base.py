"""
Join executor interface and join handles.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from meeting_bot.core.logging import get_logger
from meeting_bot.domain.models import BotSettings, MeetingInfo, MeetingPlatform

logger = get_logger("join_executor")


class JoinHandle:
    """
    A live presence in a meeting.

    leave() is idempotent; subclasses release platform resources in _release().
    """

    def __init__(self, meeting: MeetingInfo, joined_at: Optional[datetime] = None):
        self.handle_id = uuid.uuid4().hex[:16]
        self.meeting_id = meeting.id
        self.meeting_title = meeting.title
        self.platform = meeting.platform
        self.joined_at = joined_at or datetime.now(timezone.utc)
        self._left = False

    @property
    def has_left(self) -> bool:
        return self._left

    async def leave(self) -> None:
        """Leave the meeting and release resources."""
        if self._left:
            return
        self._left = True
        try:
            await self._release()
        finally:
            logger.info(f"Left meeting '{self.meeting_title}' ({self.platform.value})")

    async def _release(self) -> None:
        return None

    def to_dict(self) -> dict:
        return {
            "handle_id": self.handle_id,
            "meeting_id": self.meeting_id,
            "platform": self.platform.value,
            "joined_at": self.joined_at.isoformat(),
            "has_left": self._left,
        }


class JoinExecutor(ABC):
    """
    Capability interface for joining meetings on one platform.
    """

    platform: MeetingPlatform

    @abstractmethod
    async def join(self, meeting: MeetingInfo, settings: BotSettings) -> JoinHandle:
        """
        Join a meeting.

        Returns:
            JoinHandle for the joined meeting.

        Raises:
            JoinFailed: With a JoinFailureReason.
        """
