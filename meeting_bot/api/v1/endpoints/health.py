"""
Health check and status endpoints.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends

from meeting_bot.api.v1.schemas.bot import HealthCheckResponse, StatusResponse
from meeting_bot.config import settings
from meeting_bot.core.dependencies import get_bot_orchestrator

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check() -> Dict[str, Any]:
    """
    Health check endpoint.

    Returns:
        Health status with timestamp and version
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc),
        "version": settings.version,
    }


@router.get("/status", response_model=StatusResponse)
async def get_status(orchestrator=Depends(get_bot_orchestrator)) -> Dict[str, Any]:
    """
    Get current orchestrator status.

    Returns:
        Running bots, live joins and scheduled poll jobs
    """
    return orchestrator.get_status()
