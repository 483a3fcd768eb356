"""Data models and exceptions for push delivery.

This module defines the payload sent to devices, the per-endpoint result
the transport hands back and the delivery errors it classifies failures into.
"""

import json
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional


class DeliveryOutcome(str, Enum):
    """Outcome of one push attempt to one endpoint."""

    SENT = "sent"
    FAILED_TEMPORARY = "failed-temporary"
    FAILED_PERMANENT = "failed-permanent"


class DeliveryError(Exception):
    """Base exception for per-endpoint delivery failures.

    Attributes:
        status_code: HTTP status returned by the push service, when there was one
    """

    outcome = DeliveryOutcome.FAILED_TEMPORARY

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransientDeliveryError(DeliveryError):
    """The push service or network failed; the registration may still be valid."""


class PermanentDeliveryError(DeliveryError):
    """The push service reports the endpoint as gone; the registration is dead."""

    outcome = DeliveryOutcome.FAILED_PERMANENT


@dataclass(frozen=True)
class PushPayload:
    """The message rendered by the device's service worker.

    Attributes:
        title: Notification title (the posting title)
        body: Notification body ("<company> - <location>")
        url: Relative URL opened when the notification is clicked
    """

    title: str
    body: str
    url: str

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)

    def encode(self) -> bytes:
        """UTF-8 JSON bytes, as carried in the encrypted push body."""
        return self.to_json().encode("utf-8")


@dataclass
class DeliveryResult:
    """Result of sending one payload to one (owner, endpoint) pair.

    Attributes:
        owner_id: User the registration belongs to
        endpoint: Push endpoint that was targeted
        outcome: sent, failed-temporary or failed-permanent
        detail: Human-readable failure reason (empty on success)
        status_code: HTTP status from the push service when known
    """

    owner_id: str
    endpoint: str
    outcome: DeliveryOutcome
    detail: str = ""
    status_code: Optional[int] = None

    def is_success(self) -> bool:
        return self.outcome == DeliveryOutcome.SENT

    def is_permanent_failure(self) -> bool:
        return self.outcome == DeliveryOutcome.FAILED_PERMANENT

    @classmethod
    def sent(cls, owner_id: str, endpoint: str, status_code: Optional[int] = None) -> "DeliveryResult":
        return cls(owner_id, endpoint, DeliveryOutcome.SENT, status_code=status_code)

    @classmethod
    def from_error(cls, owner_id: str, endpoint: str, error: DeliveryError) -> "DeliveryResult":
        return cls(owner_id, endpoint, error.outcome, detail=str(error), status_code=error.status_code)
