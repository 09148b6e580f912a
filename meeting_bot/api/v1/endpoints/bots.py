"""
Meeting bot control endpoints: configure, stop and list sessions.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query

from meeting_bot.api.v1.schemas.bot import ConfigureBotRequest, SessionsResponse, SuccessResponse
from meeting_bot.core.dependencies import get_bot_orchestrator, get_settings_store
from meeting_bot.core.exceptions import (
    ConfigurationError,
    HTTPBadRequest,
    HTTPInternalServerError,
)
from meeting_bot.core.logging import get_logger

router = APIRouter()
logger = get_logger("api.meeting_bot")


@router.post("", response_model=SuccessResponse)
async def configure_meeting_bot(
    request: ConfigureBotRequest,
    orchestrator=Depends(get_bot_orchestrator),
    settings_store=Depends(get_settings_store),
) -> Dict[str, Any]:
    """
    Save a workspace's bot settings, then start or stop its bot.

    Returns as soon as the bot is registered or removed; it does not wait
    for the first calendar poll.
    """
    if not request.workspace_id or request.settings is None:
        raise HTTPBadRequest("Missing workspaceId or settings")

    logger.info(
        f"Configure bot request: workspace={request.workspace_id}, "
        f"enabled={request.settings.enabled}"
    )
    try:
        settings_store.save(request.workspace_id, request.settings)

        if request.settings.enabled:
            await orchestrator.start(request.workspace_id, request.settings)
        else:
            await orchestrator.stop(request.workspace_id)
    except ConfigurationError:
        raise
    except Exception as e:
        logger.error(f"Meeting bot API error: {e}")
        raise HTTPInternalServerError(str(e))

    return {"success": True}


@router.delete("/{workspace_id}", response_model=SuccessResponse)
async def stop_meeting_bot(
    workspace_id: str,
    orchestrator=Depends(get_bot_orchestrator),
) -> Dict[str, Any]:
    """Stop a workspace's bot; stopping a workspace with no bot is a no-op."""
    try:
        await orchestrator.stop(workspace_id)
    except Exception as e:
        logger.error(f"Stop bot error: {e}")
        raise HTTPInternalServerError(str(e))
    return {"success": True}


@router.get("", response_model=SessionsResponse)
async def list_sessions(
    workspace_id: str = Query(default="", alias="workspaceId"),
    active_only: bool = Query(default=False, alias="activeOnly"),
    orchestrator=Depends(get_bot_orchestrator),
) -> Dict[str, Any]:
    """
    List a workspace's bot sessions.

    Args:
        workspace_id: Workspace to list
        active_only: Only joining/active sessions

    Returns:
        Stored sessions, newest first
    """
    if not workspace_id:
        raise HTTPBadRequest("Missing workspaceId parameter")

    try:
        sessions = orchestrator.list_sessions(workspace_id, active_only=active_only)
    except Exception as e:
        logger.error(f"Get sessions error: {e}")
        raise HTTPInternalServerError(str(e))
    return {"sessions": [session.to_dict() for session in sessions]}
