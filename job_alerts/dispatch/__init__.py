"""Posting fan-out: match, resolve devices, deliver, prune."""

from .dispatcher import AlertDispatcher
from .models import DispatchSummary

__all__ = [
    "AlertDispatcher",
    "DispatchSummary",
]
