"""
Meeting handler module - joins meetings on each platform.
"""

from .base import JoinExecutor, JoinHandle
from .browser import BrowserManager
from .router import JoinExecutorRouter, create_default_router

__all__ = [
    "JoinExecutor",
    "JoinHandle",
    "BrowserManager",
    "JoinExecutorRouter",
    "create_default_router",
]
