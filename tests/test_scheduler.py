"""Unit tests for the scheduler service.

Tests the SchedulerService including:
- Job registration with max_instances=1 and coalescing
- Immediate first drain
- Start/shutdown lifecycle and the shutdown event
- Failing drains do not unschedule the job
"""

import logging
import threading
import time
from datetime import datetime
from unittest.mock import Mock

from job_alerts.scheduler import DRAIN_JOB_ID, SchedulerService


class TestSchedulerService:
    """Test suite for SchedulerService."""

    def test_scheduler_initialization(self):
        drain = Mock(return_value=[])
        shutdown_event = threading.Event()

        scheduler = SchedulerService(drain_callable=drain, interval_seconds=60, shutdown_event=shutdown_event)

        assert scheduler.interval_seconds == 60
        assert scheduler.drain_callable is drain
        assert scheduler.shutdown_event is shutdown_event
        assert not scheduler.is_running()

    def test_job_defaults(self):
        scheduler = SchedulerService(drain_callable=Mock(return_value=[]), interval_seconds=30)

        assert scheduler.scheduler._job_defaults["max_instances"] == 1
        assert scheduler.scheduler._job_defaults["coalesce"] is True
        assert scheduler.scheduler._job_defaults["misfire_grace_time"] == 30

    def test_start_registers_drain_job(self):
        scheduler = SchedulerService(drain_callable=Mock(return_value=[]), interval_seconds=300)

        scheduler.start()
        try:
            job = scheduler.scheduler.get_job(DRAIN_JOB_ID)
            assert job is not None
            assert job.trigger.interval.total_seconds() == 300
            assert isinstance(scheduler.get_next_run_time(), datetime)
        finally:
            scheduler.shutdown(wait=False)

    def test_start_and_shutdown(self):
        shutdown_event = threading.Event()
        scheduler = SchedulerService(drain_callable=Mock(return_value=[]), interval_seconds=300, shutdown_event=shutdown_event)

        scheduler.start()
        assert scheduler.is_running()

        scheduler.shutdown(wait=False)

        assert not scheduler.is_running()
        assert shutdown_event.is_set()

    def test_first_drain_runs_immediately(self):
        ran = threading.Event()
        scheduler = SchedulerService(drain_callable=ran.set, interval_seconds=3600)

        scheduler.start()
        try:
            assert ran.wait(timeout=5)
        finally:
            scheduler.shutdown(wait=True)

    def test_trigger_now_runs_synchronously(self):
        drain = Mock(return_value=[])
        scheduler = SchedulerService(drain_callable=drain, interval_seconds=3600)

        scheduler.trigger_now()

        drain.assert_called_once_with()

    def test_failing_drain_is_logged_not_raised(self, caplog):
        scheduler = SchedulerService(drain_callable=Mock(side_effect=RuntimeError("store down")), interval_seconds=60)

        scheduler.trigger_now()

        failures = [r for r in caplog.records if getattr(r, "event", None) == "scheduler.drain_failed"]
        assert len(failures) == 1
        assert failures[0].error_type == "RuntimeError"

    def test_failing_drain_keeps_job_scheduled(self):
        calls = []

        def flaky_drain():
            calls.append(time.time())
            raise RuntimeError("store down")

        scheduler = SchedulerService(drain_callable=flaky_drain, interval_seconds=3600)
        scheduler.start()
        try:
            deadline = time.time() + 5
            while not calls and time.time() < deadline:
                time.sleep(0.05)
            assert calls
            assert scheduler.get_next_run_time() is not None
        finally:
            scheduler.shutdown(wait=True)

    def test_next_run_time_before_start(self):
        scheduler = SchedulerService(drain_callable=Mock(return_value=[]), interval_seconds=60)
        assert scheduler.get_next_run_time() is None

    def test_shutdown_without_event_or_start(self):
        scheduler = SchedulerService(drain_callable=Mock(return_value=[]), interval_seconds=60)
        scheduler.shutdown()
        assert not scheduler.is_running()

    def test_drain_counters(self, caplog):
        caplog.set_level(logging.INFO)
        outcomes = [RuntimeError("locked"), RuntimeError("locked"), ["summary-1", "summary-2"]]

        def drain():
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        scheduler = SchedulerService(drain_callable=drain, interval_seconds=60)

        scheduler.trigger_now()
        scheduler.trigger_now()
        assert scheduler.consecutive_failures == 2

        scheduler.trigger_now()

        assert scheduler.drain_count == 3
        assert scheduler.consecutive_failures == 0
        completed = [r for r in caplog.records if getattr(r, "event", None) == "scheduler.drain_completed"]
        assert completed[0].dispatched == 2
