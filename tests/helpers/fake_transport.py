"""In-memory push transport that records every send.

Used in place of WebPushClient so dispatch tests never touch the network.
"""

import threading
import time
from typing import Dict, List, Optional, Tuple

from job_alerts.domain.models import DeviceRegistration
from job_alerts.notifications.models import DeliveryOutcome, DeliveryResult, PushPayload
from job_alerts.notifications.webpush_client import PushTransport


class RecordingTransport(PushTransport):
    """Returns scripted outcomes per endpoint and records calls.

    Args:
        outcomes: endpoint -> DeliveryOutcome (anything unlisted is sent)
        errors: endpoint -> exception to raise from ``send``
        delay: seconds each send sleeps, to observe concurrency
    """

    def __init__(
        self,
        outcomes: Optional[Dict[str, DeliveryOutcome]] = None,
        errors: Optional[Dict[str, Exception]] = None,
        delay: float = 0.0,
    ):
        self.outcomes = outcomes or {}
        self.errors = errors or {}
        self.delay = delay
        self.calls: List[Tuple[DeviceRegistration, PushPayload]] = []
        self.max_concurrency = 0
        self._active = 0
        self._lock = threading.Lock()

    def send(self, registration: DeviceRegistration, payload: PushPayload) -> DeliveryResult:
        with self._lock:
            self.calls.append((registration, payload))
            self._active += 1
            self.max_concurrency = max(self.max_concurrency, self._active)
        try:
            if self.delay:
                time.sleep(self.delay)
            if registration.endpoint in self.errors:
                raise self.errors[registration.endpoint]
            outcome = self.outcomes.get(registration.endpoint, DeliveryOutcome.SENT)
            status_code = {DeliveryOutcome.SENT: 201, DeliveryOutcome.FAILED_PERMANENT: 410}.get(outcome, 503)
            return DeliveryResult(
                owner_id=registration.owner_id,
                endpoint=registration.endpoint,
                outcome=outcome,
                detail="" if outcome == DeliveryOutcome.SENT else f"scripted {outcome.value}",
                status_code=status_code,
            )
        finally:
            with self._lock:
                self._active -= 1

    @property
    def endpoints(self) -> List[str]:
        return [registration.endpoint for registration, _ in self.calls]
