"""Registration and alert APIs used by the client application."""

from typing import Any, Dict, List, Union

from job_alerts.domain.exceptions import ValidationError
from job_alerts.domain.models import AlertPredicate, DeviceRegistration
from job_alerts.logging import get_logger
from job_alerts.persistence.store import SubscriptionStore

logger = get_logger(__name__, component="subscriptions")


class SubscriptionService:
    """Validates client input and writes it to the subscription store.

    Every method raises ``ValidationError`` for malformed input before touching
    the store, and ``StoreUnavailable`` when the store fails.
    """

    def __init__(self, store: SubscriptionStore):
        self.store = store

    def register(self, owner_id: str, endpoint: str, keys: Dict[str, str]) -> DeviceRegistration:
        """Register (or re-register) a device; the latest keys win."""
        registration = DeviceRegistration.build(owner_id, endpoint, keys)
        stored = self.store.upsert_registration(registration)
        logger.info(
            "Device registered",
            extra={"event": "registration.upserted", "owner_id": stored.owner_id},
        )
        return stored

    def register_subscription(
        self, owner_id: str, subscription: Union[str, Dict[str, Any]]
    ) -> DeviceRegistration:
        """Register a device from the browser's ``PushSubscription`` JSON."""
        registration = DeviceRegistration.from_subscription(owner_id, subscription)
        return self.register(registration.owner_id, registration.endpoint, registration.keys)

    def unregister(self, owner_id: str, endpoint: str) -> bool:
        """Remove a device; False if it was not registered."""
        removed = self.store.delete_registration(owner_id, endpoint)
        logger.info(
            "Device unregistered" if removed else "Device was not registered",
            extra={"event": "registration.deleted", "owner_id": owner_id, "removed": removed},
        )
        return removed

    def create_alert(self, owner_id: str, filters: Dict[str, Any]) -> AlertPredicate:
        """Save a new alert from the client's filter JSON."""
        predicate = AlertPredicate.from_filters(owner_id, filters)
        stored = self.store.add_alert(predicate)
        logger.info(
            "Alert created",
            extra={"event": "alert.created", "owner_id": stored.owner_id, "alert_id": stored.id},
        )
        return stored

    def delete_alert(self, alert_id: str) -> bool:
        """Delete an alert; False if it did not exist."""
        if not isinstance(alert_id, str) or not alert_id.strip():
            raise ValidationError("Invalid alert id", errors=["alert_id: must be a non-empty string"])
        removed = self.store.remove_alert(alert_id.strip())
        logger.info(
            "Alert deleted" if removed else "Alert did not exist",
            extra={"event": "alert.deleted", "alert_id": alert_id, "removed": removed},
        )
        return removed

    def list_alerts(self, owner_id: str) -> List[AlertPredicate]:
        """An owner's alerts, newest first."""
        if not isinstance(owner_id, str) or not owner_id.strip():
            raise ValidationError("Invalid owner id", errors=["owner_id: must be a non-empty string"])
        return self.store.list_alerts(owner_id.strip())
