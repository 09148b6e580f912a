"""
Dependency injection for the Meeting Bot API.
Provides the objects created at startup (held on app.state) to endpoints.
"""

from fastapi import Request

from meeting_bot.bot.orchestrator import BotOrchestrator
from meeting_bot.core.exceptions import HTTPInternalServerError
from meeting_bot.storage.settings_store import WorkspaceSettingsStore


async def get_bot_orchestrator(request: Request) -> BotOrchestrator:
    """
    Dependency injection for the bot orchestrator.

    Raises:
        HTTPException: If the service is not initialized
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPInternalServerError("Meeting bot service not initialized")
    return orchestrator


async def get_settings_store(request: Request) -> WorkspaceSettingsStore:
    """Dependency injection for the workspace settings store."""
    settings_store = getattr(request.app.state, "settings_store", None)
    if settings_store is None:
        raise HTTPInternalServerError("Settings store not initialized")
    return settings_store
