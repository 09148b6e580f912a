"""
API v1 schemas module.
"""

from .bot import (
    ConfigureBotRequest,
    SuccessResponse,
    SessionsResponse,
    HealthCheckResponse,
    StatusResponse,
    ErrorResponse,
)

__all__ = [
    "ConfigureBotRequest",
    "SuccessResponse",
    "SessionsResponse",
    "HealthCheckResponse",
    "StatusResponse",
    "ErrorResponse",
]
