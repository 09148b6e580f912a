"""
Base class for calendar gateways.
"""

from abc import ABC, abstractmethod
from typing import List

from meeting_bot.domain.models import MeetingInfo


class CalendarGateway(ABC):
    """
    Abstract base class for calendar providers.
    Defines the interface that all calendar gateway implementations must follow.
    """

    @abstractmethod
    async def is_connected(self, workspace_id: str) -> bool:
        """
        Check whether the workspace has a calendar integration.

        Returns:
            True if an integration exists, False otherwise.
        """

    @abstractmethod
    async def list_upcoming_events(self, workspace_id: str) -> List[MeetingInfo]:
        """
        Get the workspace's joinable meetings from now until the end of the day.

        An empty list means the calendar has no meetings. Implementations
        never retry; any failure to ask the provider raises
        CalendarUnavailable.

        Returns:
            List of MeetingInfo objects.
        """
