"""
API v1 endpoints module.
"""

from . import bots, health

__all__ = ["bots", "health"]
