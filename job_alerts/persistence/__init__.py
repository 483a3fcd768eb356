"""Persistence layer for alerts, device registrations and posting events.

Public API:
    # Database initialization and session management
    - init_database(database_url: str) -> None
    - get_session() -> ContextManager[Session]
    - close_database() -> None
    - get_engine() -> Engine

    # Stores (what the rest of the service talks to)
    - SubscriptionStore: alerts and device registrations
    - PostingEventStore: the inbound posting event log

    # Repositories (session-scoped building blocks)
    - AlertRepository, RegistrationRepository, PostingEventRepository

Example usage:
    >>> from job_alerts.persistence import SubscriptionStore, init_database
    >>> init_database("sqlite:///./data/job_alerts.db")
    >>> alerts = SubscriptionStore().list_all_alerts()
"""

from .database import close_database, get_engine, get_session, init_database
from .exceptions import (
    DatabaseConnectionError,
    DataIntegrityError,
    PersistenceError,
    RecordNotFoundError,
    StoreUnavailable,
)
from .repositories import AlertRepository, PostingEventRepository, RegistrationRepository
from .store import PostingEventStore, SubscriptionStore

__all__ = [
    # Database functions
    "init_database",
    "get_session",
    "close_database",
    "get_engine",
    # Stores
    "SubscriptionStore",
    "PostingEventStore",
    # Repositories
    "AlertRepository",
    "RegistrationRepository",
    "PostingEventRepository",
    # Exceptions
    "PersistenceError",
    "DatabaseConnectionError",
    "RecordNotFoundError",
    "DataIntegrityError",
    "StoreUnavailable",
]
