"""
Configuration module for the Meeting Bot orchestrator.
"""

from .settings import (
    Settings,
    settings,
    SchedulerSettings,
    StorageSettings,
    CalendarSettings,
    BrowserSettings,
)

__all__ = [
    "Settings",
    "settings",
    "SchedulerSettings",
    "StorageSettings",
    "CalendarSettings",
    "BrowserSettings",
]
