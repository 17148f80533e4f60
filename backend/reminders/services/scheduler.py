"""Fixed-interval driver for reminder passes: one pass in flight per process, failures never stop the schedule."""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from prometheus_client import Counter

from reminders.schemas.reminders import ReminderRunResult

logger = logging.getLogger(__name__)

REMINDER_CYCLES_TOTAL = Counter(
    "tracker_reminder_cycles_total",
    "Deadline reminder cycles by status",
    ["status"],
)

JOB_ID = "tracker_reminders"


class ReminderScheduler:
    """Owns its APScheduler instance, the interval job and the in-flight latch."""

    def __init__(
        self,
        process_once: Callable[[], Awaitable[ReminderRunResult]],
        interval_seconds: float,
        *,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._process_once = process_once
        self._interval_seconds = interval_seconds
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self._job: Job | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """True while a pass is in flight."""
        return self._running

    @property
    def is_scheduled(self) -> bool:
        return self._job is not None

    async def run_cycle(self) -> ReminderRunResult | None:
        """Run one pass unless one is already in flight. Never raises."""
        if self._running:
            logger.debug("TrackerReminders: previous cycle still running, skipping")
            REMINDER_CYCLES_TOTAL.labels(status="skipped").inc()
            return None
        self._running = True
        try:
            result = await self._process_once()
        except Exception as e:
            logger.exception("TrackerReminders: cycle failed: %s", e)
            REMINDER_CYCLES_TOTAL.labels(status="failed").inc()
            return None
        finally:
            self._running = False
        if result.candidates > 0:
            logger.info(
                "TrackerReminders: candidates=%s inApp=%s email=%s deduped=%s",
                result.candidates,
                result.in_app_sent,
                result.email_sent,
                result.deduped,
            )
        if result.reservation_failed or result.in_app_failed or result.email_failed:
            logger.warning(
                "TrackerReminders: partial failures reservation=%s inApp=%s email=%s",
                result.reservation_failed,
                result.in_app_failed,
                result.email_failed,
            )
        REMINDER_CYCLES_TOTAL.labels(status="ok").inc()
        return result

    def start(self) -> None:
        """Schedule run_cycle every interval, first run immediately. No-op if already scheduled."""
        if self._job is not None:
            return
        if not self._scheduler.running:
            self._scheduler.start()
        self._job = self._scheduler.add_job(
            self.run_cycle,
            "interval",
            seconds=self._interval_seconds,
            id=JOB_ID,
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info("TrackerReminders: scheduled every %ss", self._interval_seconds)

    def stop(self) -> None:
        """Remove the interval job and stop the scheduler. No-op if not scheduled."""
        if self._job is None:
            return
        self._job.remove()
        self._job = None
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        logger.info("TrackerReminders: stopped")
