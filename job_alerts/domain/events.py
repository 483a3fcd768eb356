"""Inbound posting events as recorded in the event log."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class EventStatus(str, Enum):
    """Lifecycle of one posting-created event.

    ``pending`` -> ``claimed`` -> ``completed`` or ``failed``. An event is
    claimed before it is dispatched and never returns to ``pending``.
    """

    PENDING = "pending"
    CLAIMED = "claimed"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class PostingEvent:
    """One recorded posting-created event.

    Attributes:
        posting_id: Identifier of the posting (one event per posting)
        record: Raw posting record as received
        status: Current lifecycle state
        received_at: When the event was recorded (UTC)
        claimed_at: When a dispatcher claimed it (UTC)
        finished_at: When dispatch completed or failed (UTC)
        error: Failure text for ``failed`` events
    """

    posting_id: str
    record: Dict[str, Any] = field(default_factory=dict)
    status: EventStatus = EventStatus.PENDING
    received_at: Optional[datetime] = None
    claimed_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    error: Optional[str] = None
