"""
Core module exports.
"""

from .exceptions import (
    MeetingBotException,
    ConfigurationError,
    CalendarNotConnected,
    CalendarUnavailable,
    SessionStoreError,
    DuplicateSession,
    SessionNotFound,
    InvalidTransition,
    MeetingJoinError,
    JoinFailed,
    UnsupportedPlatform,
    SchedulerError,
)
from .logging import get_logger, setup_logging

__all__ = [
    "MeetingBotException",
    "ConfigurationError",
    "CalendarNotConnected",
    "CalendarUnavailable",
    "SessionStoreError",
    "DuplicateSession",
    "SessionNotFound",
    "InvalidTransition",
    "MeetingJoinError",
    "JoinFailed",
    "UnsupportedPlatform",
    "SchedulerError",
    "get_logger",
    "setup_logging",
]
