"""Shared fixtures for the alert dispatcher tests."""

import pytest

from job_alerts.persistence import PostingEventStore, SubscriptionStore, close_database, init_database

TEST_VAPID_PUBLIC_KEY = "BEl62iUYgUivxIkv69yViEuiBIa-Ib9-SkvMeAtA3LFgDzkrxZJjSgSnfckjBJuBkr3qBUYIHBQFLXYp5Nksh8U"
TEST_VAPID_PRIVATE_KEY = "UUxI4O8-FbRouAevSmBQ6o18hgE4nSG3qwvJTfKc-ls"


@pytest.fixture
def database():
    """Fresh in-memory database, closed after the test."""
    init_database("sqlite:///:memory:")
    yield
    close_database()


@pytest.fixture
def store(database):
    return SubscriptionStore()


@pytest.fixture
def event_store(database):
    return PostingEventStore()


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set the required environment variables and clear the optional ones."""
    monkeypatch.setenv("VAPID_PUBLIC_KEY", TEST_VAPID_PUBLIC_KEY)
    monkeypatch.setenv("VAPID_PRIVATE_KEY", TEST_VAPID_PRIVATE_KEY)
    for name in ("VAPID_SUBJECT", "LOG_LEVEL", "DATABASE_URL", "ENVIRONMENT"):
        monkeypatch.delenv(name, raising=False)
