"""
Custom exceptions for the Meeting Bot orchestrator.
"""

from typing import Any, Dict, Optional
from fastapi import HTTPException, status


class MeetingBotException(Exception):
    """Base exception for Meeting Bot errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(MeetingBotException):
    """Raised when a start/stop request or the app configuration is invalid."""
    pass


class CalendarNotConnected(ConfigurationError):
    """Raised when a workspace has no calendar integration."""

    def __init__(self, workspace_id: str):
        super().__init__(
            f"Google Calendar not connected for workspace {workspace_id}",
            {"workspace_id": workspace_id},
        )
        self.workspace_id = workspace_id


class CalendarUnavailable(MeetingBotException):
    """
    Raised when the calendar provider could not be asked.

    Distinct from an empty result: callers treat this as a transient outage.
    """

    AUTH = "auth"
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    NOT_CONNECTED = "not_connected"
    PROVIDER_ERROR = "provider_error"

    def __init__(self, workspace_id: str, reason: str, message: Optional[str] = None):
        super().__init__(
            message or f"Calendar unavailable for workspace {workspace_id}: {reason}",
            {"workspace_id": workspace_id, "reason": reason},
        )
        self.workspace_id = workspace_id
        self.reason = reason


class SessionStoreError(MeetingBotException):
    """Raised when the session store cannot complete an operation."""
    pass


class DuplicateSession(SessionStoreError):
    """Raised when an active session already exists for a workspace/meeting pair."""

    def __init__(self, workspace_id: str, meeting_id: str, existing_session_id: str):
        super().__init__(
            f"Active session {existing_session_id} already exists for meeting {meeting_id}",
            {
                "workspace_id": workspace_id,
                "meeting_id": meeting_id,
                "session_id": existing_session_id,
            },
        )
        self.workspace_id = workspace_id
        self.meeting_id = meeting_id
        self.existing_session_id = existing_session_id


class SessionNotFound(SessionStoreError):
    """Raised when a session id does not exist."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}", {"session_id": session_id})
        self.session_id = session_id


class InvalidTransition(SessionStoreError):
    """Raised when a status update does not follow the session state machine."""

    def __init__(self, session_id: str, current: str, requested: str):
        super().__init__(
            f"Session {session_id} cannot move from '{current}' to '{requested}'",
            {"session_id": session_id, "current": current, "requested": requested},
        )
        self.session_id = session_id
        self.current = current
        self.requested = requested


class MeetingJoinError(MeetingBotException):
    """Base class for join executor errors."""
    pass


class JoinFailed(MeetingJoinError):
    """Raised by a join executor when joining a meeting fails."""

    def __init__(self, reason: str, message: Optional[str] = None):
        # Normalise to the reason value so callers can persist it directly
        reason = getattr(reason, "value", reason)
        super().__init__(message or f"Join failed: {reason}", {"reason": reason})
        self.reason = reason


class UnsupportedPlatform(MeetingJoinError):
    """Raised when no join executor handles a meeting's platform."""

    def __init__(self, platform: str):
        platform = getattr(platform, "value", platform)
        super().__init__(f"Unsupported meeting platform: {platform}", {"platform": platform})
        self.platform = platform


class SchedulerError(MeetingBotException):
    """Raised when scheduling operations fail."""
    pass


# HTTP Exceptions for API responses
class HTTPBadRequest(HTTPException):
    """400 Bad Request"""
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class HTTPInternalServerError(HTTPException):
    """500 Internal Server Error"""
    def __init__(self, detail: str = "Internal server error"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
