"""Push and in-app notification delivery.

This module provides:
- PushTransport / WebPushClient: Web Push delivery with failure classification
- build_push_payload: posting -> {title, body, url}
- InAppNotifier: session-local notices for connected clients
- DeliveryResult, PushPayload and the delivery error hierarchy
"""

from .in_app import InAppNotice, InAppNotifier
from .models import (
    DeliveryError,
    DeliveryOutcome,
    DeliveryResult,
    PermanentDeliveryError,
    PushPayload,
    TransientDeliveryError,
)
from .payloads import build_push_payload
from .webpush_client import PushTransport, WebPushClient

__all__ = [
    "PushTransport",
    "WebPushClient",
    "InAppNotifier",
    "InAppNotice",
    "build_push_payload",
    "PushPayload",
    "DeliveryResult",
    "DeliveryOutcome",
    "DeliveryError",
    "TransientDeliveryError",
    "PermanentDeliveryError",
]
