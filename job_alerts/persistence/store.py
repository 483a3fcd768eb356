"""Store facades used by the dispatcher, the inbox and the public APIs.

Each method runs in its own short session. Whatever goes wrong underneath,
callers only ever see ``StoreUnavailable``.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, ContextManager, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from job_alerts.domain.events import EventStatus, PostingEvent
from job_alerts.domain.models import AlertPredicate, DeviceRegistration
from job_alerts.logging import get_logger

from .database import get_session
from .exceptions import PersistenceError, StoreUnavailable
from .repositories import AlertRepository, PostingEventRepository, RegistrationRepository

logger = get_logger(__name__, component="store")

SessionFactory = Callable[[], ContextManager[Session]]


class _SessionScopedStore:
    def __init__(self, session_factory: Optional[SessionFactory] = None):
        self._session_factory = session_factory or get_session

    @contextmanager
    def _session(self, operation: str):
        try:
            with self._session_factory() as session:
                yield session
        except StoreUnavailable:
            raise
        except (PersistenceError, SQLAlchemyError) as e:
            logger.error(
                f"Store operation {operation} failed: {e}",
                extra={"event": "store.unavailable", "operation": operation, "error_type": type(e).__name__},
            )
            raise StoreUnavailable(f"{operation} failed: {e}") from e


class SubscriptionStore(_SessionScopedStore):
    """Durable storage of alert predicates and device registrations."""

    def list_all_alerts(self) -> List[AlertPredicate]:
        """Snapshot of every saved alert, oldest first."""
        with self._session("list_all_alerts") as session:
            return AlertRepository(session).list_all()

    def list_alerts(self, owner_id: str) -> List[AlertPredicate]:
        """One owner's alerts, newest first."""
        with self._session("list_alerts") as session:
            return AlertRepository(session).list_by_owner(owner_id)

    def add_alert(self, alert: AlertPredicate) -> AlertPredicate:
        """Store a new alert and return it with its assigned id."""
        with self._session("add_alert") as session:
            return AlertRepository(session).add(alert)

    def remove_alert(self, alert_id: str) -> bool:
        """Delete an alert; False when it was already gone."""
        with self._session("remove_alert") as session:
            return AlertRepository(session).delete(alert_id)

    def list_registrations(self, owner_id: str) -> List[DeviceRegistration]:
        with self._session("list_registrations") as session:
            return RegistrationRepository(session).list_by_owner(owner_id)

    def upsert_registration(self, registration: DeviceRegistration) -> DeviceRegistration:
        """Insert or replace the registration for (owner, endpoint)."""
        with self._session("upsert_registration") as session:
            return RegistrationRepository(session).upsert(registration)

    def delete_registration(self, owner_id: str, endpoint: str) -> bool:
        """Delete a registration; False when it was already gone."""
        with self._session("delete_registration") as session:
            return RegistrationRepository(session).delete(owner_id, endpoint)


class PostingEventStore(_SessionScopedStore):
    """Durable log of posting-created events awaiting dispatch."""

    def record(self, posting_id: str, record: Dict[str, Any], received_at: Optional[datetime] = None) -> bool:
        """Record a pending event; False if this posting was seen before."""
        with self._session("record_event") as session:
            return PostingEventRepository(session).add_if_absent(posting_id, record, received_at)

    def claim(self, posting_id: str) -> Optional[PostingEvent]:
        """Claim one pending event, or None if it is not pending."""
        with self._session("claim_event") as session:
            return PostingEventRepository(session).claim(posting_id)

    def claim_pending(self, limit: int) -> List[PostingEvent]:
        with self._session("claim_pending_events") as session:
            return PostingEventRepository(session).claim_pending(limit)

    def complete(self, posting_id: str) -> None:
        with self._session("complete_event") as session:
            PostingEventRepository(session).finish(posting_id, EventStatus.COMPLETED)

    def fail(self, posting_id: str, error: str) -> None:
        with self._session("fail_event") as session:
            PostingEventRepository(session).finish(posting_id, EventStatus.FAILED, error=error)

    def get(self, posting_id: str) -> Optional[PostingEvent]:
        with self._session("get_event") as session:
            return PostingEventRepository(session).get(posting_id)

    def counts(self) -> Dict[str, int]:
        """Number of events per status."""
        with self._session("count_events") as session:
            return PostingEventRepository(session).count_by_status()
