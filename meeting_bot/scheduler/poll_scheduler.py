"""
Poll scheduler using APScheduler.
Runs each workspace bot's calendar poll as an interval job.
"""

from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

from apscheduler.events import (
    EVENT_JOB_ERROR,
    EVENT_JOB_EXECUTED,
    EVENT_JOB_MAX_INSTANCES,
    EVENT_JOB_MISSED,
    JobEvent,
)
from apscheduler.jobstores.base import ConflictingIdError, JobLookupError
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from meeting_bot.config import SchedulerSettings, settings
from meeting_bot.core.exceptions import SchedulerError
from meeting_bot.core.logging import get_logger

logger = get_logger("scheduler")


class ScheduledJob:
    """
    Cancellable handle for a scheduled interval job.

    cancel() is idempotent and takes effect immediately: no further runs start.
    """

    def __init__(self, job_id: str, remove: Callable[[str], None]):
        self.job_id = job_id
        self._remove = remove
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._remove(self.job_id)


class PollScheduler:
    """
    Shared AsyncIOScheduler for all workspace bots.

    Each job runs with max_instances=1 and coalescing, so a slow poll never
    overlaps the next run of the same job.
    """

    def __init__(self, scheduler_settings: Optional[SchedulerSettings] = None):
        self._settings = scheduler_settings or settings.scheduler
        self._is_running: bool = False

        self._scheduler = AsyncIOScheduler(
            jobstores={'default': MemoryJobStore()},
            timezone=timezone.utc,
        )

        self._scheduler.add_listener(
            self._on_job_event,
            EVENT_JOB_EXECUTED | EVENT_JOB_ERROR | EVENT_JOB_MISSED | EVENT_JOB_MAX_INSTANCES
        )

    def start(self) -> None:
        """Start the scheduler (must be called with a running event loop)."""
        if not self._is_running:
            self._scheduler.start()
            self._is_running = True
            logger.info("Poll scheduler started")

    def stop(self) -> None:
        """Stop the scheduler."""
        if not self._is_running:
            return

        try:
            # Avoid calling into a closed event loop (e.g. during test teardown)
            loop = getattr(self._scheduler, "_eventloop", None)
            if self._scheduler.running and not (loop and loop.is_closed()):
                self._scheduler.shutdown(wait=False)
            logger.info("Poll scheduler stopped")
        finally:
            self._is_running = False

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._is_running

    def schedule_interval(
        self,
        job_id: str,
        func: Callable[[], Awaitable[None]],
        seconds: float,
        name: Optional[str] = None,
    ) -> ScheduledJob:
        """
        Schedule a coroutine function to run every `seconds`.

        Args:
            job_id: Unique job id.
            func: Coroutine function called with no arguments.
            seconds: Interval between runs; the first run is one interval from now.
            name: Human readable job name.

        Returns:
            ScheduledJob handle used to cancel the job.

        Raises:
            SchedulerError: If a job with this id is already scheduled.
        """
        if seconds <= 0:
            raise SchedulerError(f"Interval must be positive, got {seconds}")

        try:
            self._scheduler.add_job(
                func,
                trigger=IntervalTrigger(seconds=seconds, timezone=timezone.utc),
                id=job_id,
                name=name or job_id,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=self._settings.misfire_grace_seconds,
            )
        except ConflictingIdError as e:
            raise SchedulerError(f"Job already scheduled: {job_id}", {"job_id": job_id}) from e

        logger.debug(f"Scheduled job {job_id} every {seconds} seconds")
        return ScheduledJob(job_id, self._remove_job)

    def _remove_job(self, job_id: str) -> None:
        try:
            self._scheduler.remove_job(job_id)
            logger.debug(f"Removed job {job_id}")
        except JobLookupError:
            logger.debug(f"Job {job_id} already removed")

    def get_jobs(self) -> List[dict]:
        """
        Get information about scheduled jobs.

        Returns:
            List of job info dictionaries.
        """
        jobs = []
        for job in self._scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run": next_run.isoformat() if next_run else None,
                "trigger": str(job.trigger)
            })
        return jobs

    def _on_job_event(self, event: JobEvent) -> None:
        """
        Handle scheduler job events.

        Args:
            event: Job event.
        """
        if event.code == EVENT_JOB_MAX_INSTANCES:
            logger.warning(f"Job {event.job_id} still running, skipped this run")
        elif event.code == EVENT_JOB_MISSED:
            logger.warning(f"Job {event.job_id} missed its run time")
        elif getattr(event, "exception", None):
            logger.error(f"Job {event.job_id} failed: {event.exception}")
        elif getattr(event, "scheduled_run_time", None):
            delay = (datetime.now(timezone.utc) - event.scheduled_run_time).total_seconds()
            if delay > 60:
                logger.warning(f"Job {event.job_id} was delayed by {delay:.0f} seconds")
