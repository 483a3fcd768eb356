"""Tests for the registration and alert APIs."""

from unittest.mock import MagicMock

import pytest

from job_alerts.domain import ValidationError
from job_alerts.persistence import StoreUnavailable
from job_alerts.subscriptions import SubscriptionService

ENDPOINT = "https://fcm.googleapis.com/fcm/send/device-1"
KEYS = {"p256dh": "BKey", "auth": "secret"}


@pytest.fixture
def service(store):
    return SubscriptionService(store)


class TestRegistrations:
    """Device registration API."""

    def test_register(self, service, store):
        registration = service.register("user-1", ENDPOINT, KEYS)

        assert registration.registered_at is not None
        assert store.list_registrations("user-1")[0].endpoint == ENDPOINT

    def test_reregister_replaces_keys(self, service, store):
        service.register("user-1", ENDPOINT, KEYS)
        service.register("user-1", ENDPOINT, {"p256dh": "BKey2", "auth": "secret2"})

        registrations = store.list_registrations("user-1")
        assert len(registrations) == 1
        assert registrations[0].keys == {"p256dh": "BKey2", "auth": "secret2"}

    def test_register_subscription_json(self, service, store):
        service.register_subscription(
            "user-1", '{"endpoint": "%s", "expirationTime": null, "keys": {"p256dh": "k", "auth": "a"}}' % ENDPOINT
        )
        assert len(store.list_registrations("user-1")) == 1

    def test_invalid_registration_never_stored(self, service, store):
        with pytest.raises(ValidationError):
            service.register("user-1", ENDPOINT, {"p256dh": "BKey"})
        assert store.list_registrations("user-1") == []

    def test_unregister(self, service):
        service.register("user-1", ENDPOINT, KEYS)

        assert service.unregister("user-1", ENDPOINT) is True
        assert service.unregister("user-1", ENDPOINT) is False

    def test_unregister_other_owner_untouched(self, service, store):
        service.register("user-1", ENDPOINT, KEYS)

        assert service.unregister("user-2", ENDPOINT) is False
        assert len(store.list_registrations("user-1")) == 1


class TestAlerts:
    """Saved alert API."""

    def test_create_alert_from_client_filters(self, service):
        alert = service.create_alert("user-1", {"searchTerm": "python", "filterStatus": "all", "filterSalary": 30000})

        assert alert.id
        assert alert.search_text == "python"
        assert alert.min_salary == 30000

    def test_list_alerts_newest_first(self, service):
        first = service.create_alert("user-1", {"searchTerm": "go"})
        second = service.create_alert("user-1", {"searchTerm": "rust"})
        service.create_alert("user-2", {})

        ids = [alert.id for alert in service.list_alerts("user-1")]

        assert set(ids) == {first.id, second.id}
        assert len(ids) == 2

    def test_invalid_filters_rejected(self, service, store):
        with pytest.raises(ValidationError):
            service.create_alert("user-1", {"filterExperience": [10, 1]})
        assert store.list_all_alerts() == []

    def test_delete_alert(self, service):
        alert = service.create_alert("user-1", {})

        assert service.delete_alert(alert.id) is True
        assert service.delete_alert(alert.id) is False

    @pytest.mark.parametrize("alert_id", ["", "   ", None, 12])
    def test_delete_alert_requires_id(self, service, alert_id):
        with pytest.raises(ValidationError, match="Invalid alert id"):
            service.delete_alert(alert_id)

    @pytest.mark.parametrize("owner_id", ["", None])
    def test_list_alerts_requires_owner(self, service, owner_id):
        with pytest.raises(ValidationError, match="Invalid owner id"):
            service.list_alerts(owner_id)


def test_store_failures_surface_unchanged():
    store = MagicMock()
    store.upsert_registration.side_effect = StoreUnavailable("upsert_registration failed: locked")

    with pytest.raises(StoreUnavailable):
        SubscriptionService(store).register("user-1", ENDPOINT, KEYS)
