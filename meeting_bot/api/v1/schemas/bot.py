"""
API request/response schemas for the meeting bot control surface.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from meeting_bot.domain.models import BotSettings


class ConfigureBotRequest(BaseModel):
    """Save a workspace's bot settings and start or stop its bot."""
    model_config = ConfigDict(populate_by_name=True)

    # Optional so a missing value gets the API's own 400 message
    workspace_id: Optional[str] = Field(default=None, alias="workspaceId")
    settings: Optional[BotSettings] = None


class SuccessResponse(BaseModel):
    success: bool = True


class SessionsResponse(BaseModel):
    """Bot sessions for a workspace, newest first."""
    sessions: List[dict]


class HealthCheckResponse(BaseModel):
    """Health check response."""
    status: str = "ok"
    timestamp: datetime
    version: str


class StatusResponse(BaseModel):
    """Orchestrator status."""
    running: bool
    bots: List[dict]
    active_joins: List[dict]
    jobs: List[dict]


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
