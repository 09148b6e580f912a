"""
Bot module - workspace bots and the orchestrator that runs them.
"""

from .orchestrator import BotOrchestrator
from .workspace_bot import WorkspaceBot

__all__ = ["BotOrchestrator", "WorkspaceBot"]
