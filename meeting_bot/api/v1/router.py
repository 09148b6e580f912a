"""
API v1 router aggregation.
"""

from fastapi import APIRouter
from meeting_bot.api.v1.endpoints import bots, health

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(bots.router, prefix="/meeting-bot", tags=["Meeting Bot"])
api_router.include_router(health.router, tags=["Health"])

__all__ = ["api_router"]
