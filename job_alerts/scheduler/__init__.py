"""Periodic draining of the posting inbox."""

from .service import DRAIN_JOB_ID, SchedulerService

__all__ = [
    "SchedulerService",
    "DRAIN_JOB_ID",
]
