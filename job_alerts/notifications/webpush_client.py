"""Web Push delivery over the VAPID-signed push protocol.

``PushTransport`` is the contract the dispatcher depends on;
``WebPushClient`` implements it with pywebpush, which handles the
``aes128gcm`` payload encryption against the registration's ``p256dh``/``auth``
keys and signs the VAPID JWT with the server's private key.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

import requests
from pywebpush import WebPushException, webpush

from job_alerts.config.environment import EnvironmentConfig
from job_alerts.config.models import PushConfig
from job_alerts.domain.models import DeviceRegistration

from .models import DeliveryError, DeliveryResult, PermanentDeliveryError, PushPayload, TransientDeliveryError

logger = logging.getLogger(__name__)

# Push service statuses meaning the subscription no longer exists
GONE_STATUSES = frozenset({404, 410})


class PushTransport(ABC):
    """Sends one payload to one device registration."""

    @abstractmethod
    def send(self, registration: DeviceRegistration, payload: PushPayload) -> DeliveryResult:
        """Deliver ``payload`` and report the outcome.

        Implementations report per-endpoint problems in the returned result
        instead of raising.
        """


class WebPushClient(PushTransport):
    """PushTransport backed by pywebpush.

    Designed to be easily mockable: the ``webpush`` function can be injected.
    """

    def __init__(
        self,
        vapid_private_key: str,
        vapid_subject: str,
        ttl_seconds: int = 86400,
        timeout_seconds: float = 10.0,
        webpush_func: Optional[Callable] = None,
    ):
        """
        Args:
            vapid_private_key: Server private key (base64url DER or a PEM file path)
            vapid_subject: ``mailto:`` contact placed in the JWT ``sub`` claim
            ttl_seconds: How long the push service may hold an undelivered message
            timeout_seconds: HTTP timeout for the request to the push service
            webpush_func: Replacement for ``pywebpush.webpush`` (for testing)
        """
        self.vapid_private_key = vapid_private_key
        self.vapid_subject = vapid_subject
        self.ttl_seconds = ttl_seconds
        self.timeout_seconds = timeout_seconds
        self._webpush = webpush_func or webpush

    @classmethod
    def from_config(cls, push_config: PushConfig, env_config: EnvironmentConfig, **kwargs) -> "WebPushClient":
        return cls(
            vapid_private_key=env_config.vapid_private_key,
            vapid_subject=env_config.resolve_subject(push_config.contact_email),
            ttl_seconds=push_config.ttl_seconds,
            timeout_seconds=push_config.timeout_seconds,
            **kwargs,
        )

    def send(self, registration: DeviceRegistration, payload: PushPayload) -> DeliveryResult:
        try:
            status_code = self.push(registration, payload)
        except DeliveryError as e:
            log = logger.info if isinstance(e, PermanentDeliveryError) else logger.warning
            log(
                f"Push delivery failed: {e}",
                extra={
                    "event": "delivery.failed",
                    "owner_id": registration.owner_id,
                    "outcome": e.outcome.value,
                    "status_code": e.status_code,
                },
            )
            return DeliveryResult.from_error(registration.owner_id, registration.endpoint, e)

        logger.debug(
            "Push delivered",
            extra={"event": "delivery.sent", "owner_id": registration.owner_id, "status_code": status_code},
        )
        return DeliveryResult.sent(registration.owner_id, registration.endpoint, status_code)

    def push(self, registration: DeviceRegistration, payload: PushPayload) -> Optional[int]:
        """Perform the HTTP request to the push service.

        Returns:
            The push service's HTTP status code, when the response carries one

        Raises:
            PermanentDeliveryError: If the push service answers 404 or 410
            TransientDeliveryError: On any other rejection, network error or timeout
        """
        try:
            response = self._webpush(
                subscription_info=registration.subscription_info(),
                data=payload.to_json(),
                vapid_private_key=self.vapid_private_key,
                # pywebpush writes "aud" and "exp" into the claims it is given
                vapid_claims={"sub": self.vapid_subject},
                ttl=self.ttl_seconds,
                timeout=self.timeout_seconds,
            )
        except WebPushException as e:
            status_code = getattr(e.response, "status_code", None)
            if status_code in GONE_STATUSES:
                raise PermanentDeliveryError(
                    f"Push service reports subscription gone (HTTP {status_code})", status_code
                ) from e
            raise TransientDeliveryError(f"Push service rejected message: {e.message}", status_code) from e
        except requests.Timeout as e:
            raise TransientDeliveryError(f"Push service timed out: {e}") from e
        except requests.RequestException as e:
            raise TransientDeliveryError(f"Network error contacting push service: {e}") from e
        except ValueError as e:
            # Undecodable key material on either side
            raise TransientDeliveryError(f"Could not encrypt or sign push message: {e}") from e

        return getattr(response, "status_code", None)
