"""
Storage module - session, settings and integration records.
"""

from .json_database import JsonDatabase
from .session_store import SessionStore, JsonSessionStore
from .settings_store import WorkspaceSettingsStore, IntegrationStore, GOOGLE_CALENDAR

__all__ = [
    "JsonDatabase",
    "SessionStore",
    "JsonSessionStore",
    "WorkspaceSettingsStore",
    "IntegrationStore",
    "GOOGLE_CALENDAR",
]
