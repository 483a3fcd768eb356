"""Test helper utilities for the alert dispatcher tests."""

from .factories import make_alert, make_posting, make_registration, posting_record
from .fake_transport import RecordingTransport
from .scenario import load_scenario, seed_store

__all__ = [
    "RecordingTransport",
    "make_alert",
    "make_posting",
    "make_registration",
    "posting_record",
    "load_scenario",
    "seed_store",
]
