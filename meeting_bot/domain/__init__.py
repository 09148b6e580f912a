"""
Domain layer exports.
"""

from .models import (
    ACTIVE_STATUSES,
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    BotSession,
    BotSettings,
    JoinFailureReason,
    MeetingInfo,
    MeetingPlatform,
    SessionStatus,
)

__all__ = [
    "ACTIVE_STATUSES",
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATUSES",
    "BotSession",
    "BotSettings",
    "JoinFailureReason",
    "MeetingInfo",
    "MeetingPlatform",
    "SessionStatus",
]
