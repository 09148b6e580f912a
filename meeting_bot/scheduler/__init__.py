"""
Scheduler module - periodic polling jobs for workspace bots.
"""

from .poll_scheduler import PollScheduler, ScheduledJob

__all__ = ["PollScheduler", "ScheduledJob"]
