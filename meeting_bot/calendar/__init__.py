"""
Calendar module - upcoming meetings per workspace.
"""

from .base import CalendarGateway
from .google_calendar import GoogleCalendarGateway
from .url_extractor import extract_meeting_url, detect_platform_from_url

__all__ = [
    "CalendarGateway",
    "GoogleCalendarGateway",
    "extract_meeting_url",
    "detect_platform_from_url",
]
