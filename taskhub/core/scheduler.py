"""Periodic maintenance scheduling with APScheduler."""

import logging
from collections.abc import Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from taskhub.core.config import constants, settings
from taskhub.core.scheduler_tracker import JobTracker, retry_job_with_backoff


logger = logging.getLogger(__name__)


class MaintenanceScheduler:
    """Runs the maintenance job on a fixed interval."""

    def __init__(
        self,
        job: Callable[[], Awaitable[object]],
        *,
        interval_minutes: int | None = None,
        tracker: JobTracker | None = None,
        retry_base_delay: float = 2.0,
    ) -> None:
        self._job = job
        self._interval = settings.maintenance_interval_minutes if interval_minutes is None else interval_minutes
        self._retry_base_delay = retry_base_delay
        self.tracker = tracker or JobTracker()
        self.scheduler = AsyncIOScheduler()

    @property
    def running(self) -> bool:
        return self.scheduler.running

    async def run_maintenance(self) -> bool:
        """Run the maintenance job once with retry and tracking."""
        return await retry_job_with_backoff(
            self._job,
            constants.MAINTENANCE_JOB_ID,
            tracker=self.tracker,
            base_delay=self._retry_base_delay,
        )

    def start(self) -> None:
        """Register the maintenance job and start the scheduler.

        Must be called while the event loop is running.
        """
        logger.info("Starting scheduler")

        self.scheduler.add_job(
            self.run_maintenance,
            trigger=IntervalTrigger(minutes=self._interval),
            id=constants.MAINTENANCE_JOB_ID,
            name="Task Maintenance",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        logger.info("Scheduled maintenance job: every %d minute(s)", self._interval)

        self.scheduler.start()
        logger.info("Scheduler started successfully")

    def stop(self) -> None:
        if not self.scheduler.running:
            return
        logger.info("Stopping scheduler")
        self.scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
