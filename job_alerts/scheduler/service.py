"""Scheduler service for periodic inbox drains."""

import threading
from datetime import datetime, timezone
from typing import Callable, Optional, Sized

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from job_alerts.logging import get_logger

logger = get_logger(__name__, component="scheduler")

DRAIN_JOB_ID = "posting-inbox-drain"


class SchedulerService:
    """
    Wraps APScheduler to drain the posting inbox at a fixed interval.

    Runs on a BackgroundScheduler so the main thread stays free to handle
    signals. At most one drain runs at a time and late runs are coalesced.
    """

    def __init__(
        self,
        drain_callable: Callable[[], Optional[Sized]],
        interval_seconds: int,
        shutdown_event: Optional[threading.Event] = None,
    ):
        """
        Args:
            drain_callable: Called on every tick (e.g. ``PostingInbox.drain``)
            interval_seconds: Seconds between ticks
            shutdown_event: Set on shutdown so the main thread can exit
        """
        self.drain_callable = drain_callable
        self.interval_seconds = interval_seconds
        self.shutdown_event = shutdown_event
        self.drain_count = 0
        self.consecutive_failures = 0

        self.scheduler = BackgroundScheduler(
            job_defaults={
                "max_instances": 1,
                "coalesce": True,
                "misfire_grace_time": interval_seconds,
            },
            timezone=timezone.utc,
        )

    def start(self) -> None:
        """Register the drain job and start the scheduler; the first drain runs immediately."""
        next_run = datetime.now(timezone.utc)
        self.scheduler.add_job(
            func=self._run_drain,
            trigger=IntervalTrigger(seconds=self.interval_seconds, timezone=timezone.utc),
            id=DRAIN_JOB_ID,
            name="Posting inbox drain",
            replace_existing=True,
            next_run_time=next_run,
        )
        self.scheduler.start()

        logger.info(
            f"Scheduler started with interval: {self.interval_seconds} seconds",
            extra={
                "event": "scheduler.started",
                "interval_seconds": self.interval_seconds,
                "next_run_time": next_run.isoformat(),
            },
        )

    def _run_drain(self) -> None:
        self.drain_count += 1
        try:
            result = self.drain_callable()
        except Exception as e:
            # Keep the job scheduled; the next tick tries again
            self.consecutive_failures += 1
            logger.error(
                f"Inbox drain failed: {e}",
                extra={
                    "event": "scheduler.drain_failed",
                    "error_type": type(e).__name__,
                    "consecutive_failures": self.consecutive_failures,
                },
                exc_info=True,
            )
            return

        self.consecutive_failures = 0
        if result:
            logger.info(
                f"Inbox drain dispatched {len(result)} events",
                extra={"event": "scheduler.drain_completed", "dispatched": len(result)},
            )

    def shutdown(self, wait: bool = False) -> None:
        """Stop the scheduler and release anyone waiting on ``shutdown_event``."""
        logger.info(
            "Shutting down scheduler",
            extra={"event": "scheduler.stopping", "wait_for_jobs": wait},
        )

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        if self.shutdown_event:
            self.shutdown_event.set()

        logger.info("Scheduler shutdown complete", extra={"event": "scheduler.stopped"})

    def trigger_now(self) -> None:
        """Run one drain synchronously in the calling thread."""
        logger.info("Triggering immediate inbox drain", extra={"event": "scheduler.trigger_now"})
        self._run_drain()

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_next_run_time(self) -> Optional[datetime]:
        job = self.scheduler.get_job(DRAIN_JOB_ID)
        return job.next_run_time if job else None
