"""Data access layer (repositories) for persistence operations.

Repositories wrap one session, translate SQLAlchemy errors into
PersistenceError subclasses and return domain models rather than ORM rows.
"""

import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from job_alerts.domain.events import EventStatus, PostingEvent
from job_alerts.domain.models import AlertPredicate, DeviceRegistration
from job_alerts.utils.timestamps import format_for_storage, utc_now

from .exceptions import DataIntegrityError, PersistenceError, RecordNotFoundError
from .schema import AlertModel, PostingEventModel, PushSubscriptionModel

logger = logging.getLogger(__name__)


class AlertRepository:
    """Repository for saved alert predicates."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, alert: AlertPredicate) -> AlertPredicate:
        """Persist a new alert, assigning its id and creation time.

        Returns:
            The stored alert with ``id`` and ``created_at`` set

        Raises:
            DataIntegrityError: If the id collides with an existing alert
            PersistenceError: If database error occurs
        """
        stored = alert.model_copy(
            update={
                "id": alert.id or uuid.uuid4().hex,
                "created_at": alert.created_at or utc_now(),
            }
        )
        try:
            self.session.add(AlertModel.from_domain(stored))
            self.session.flush()
            return stored
        except IntegrityError as e:
            logger.error(f"Integrity error adding alert {stored.id}: {e}", exc_info=True)
            raise DataIntegrityError(f"Failed to add alert due to constraint violation: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error adding alert {stored.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to add alert: {e}") from e

    def delete(self, alert_id: str) -> bool:
        """Delete an alert if present; returns whether a row was removed."""
        try:
            result = self.session.execute(delete(AlertModel).where(AlertModel.id == alert_id))
            self.session.flush()
            return result.rowcount > 0
        except SQLAlchemyError as e:
            logger.error(f"Error deleting alert {alert_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to delete alert: {e}") from e

    def list_all(self) -> List[AlertPredicate]:
        """Return every alert, oldest first.

        Rows whose stored filters no longer validate are skipped and logged.
        """
        stmt = select(AlertModel).order_by(AlertModel.created_at.asc(), AlertModel.id.asc())
        return self._load(stmt)

    def list_by_owner(self, owner_id: str) -> List[AlertPredicate]:
        """Return one owner's alerts, newest first."""
        stmt = (
            select(AlertModel)
            .where(AlertModel.user_id == owner_id)
            .order_by(AlertModel.created_at.desc(), AlertModel.id.desc())
        )
        return self._load(stmt)

    def _load(self, stmt) -> List[AlertPredicate]:
        try:
            rows = self.session.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Error listing alerts: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list alerts: {e}") from e

        alerts = []
        for row in rows:
            try:
                alerts.append(row.to_domain())
            except ValueError as e:
                logger.warning(
                    f"Skipping alert with invalid stored filters: {e}",
                    extra={"event": "alert.invalid_skipped", "alert_id": row.id, "owner_id": row.user_id},
                )
        return alerts


class RegistrationRepository:
    """Repository for device push registrations."""

    def __init__(self, session: Session):
        self.session = session

    def upsert(self, registration: DeviceRegistration) -> DeviceRegistration:
        """Insert a registration or overwrite the keys of an existing one.

        Runs as a single ``INSERT ... ON CONFLICT DO UPDATE`` so concurrent
        registrations of the same (user, endpoint) resolve to the last writer.
        """
        stored = registration
        if stored.registered_at is None:
            stored = registration.model_copy(update={"registered_at": utc_now()})

        values = {
            "user_id": stored.owner_id,
            "endpoint": stored.endpoint,
            "p256dh": stored.keys["p256dh"],
            "auth": stored.keys["auth"],
            "registered_at": format_for_storage(stored.registered_at),
        }
        stmt = sqlite_insert(PushSubscriptionModel).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[PushSubscriptionModel.user_id, PushSubscriptionModel.endpoint],
            set_={
                "p256dh": stmt.excluded.p256dh,
                "auth": stmt.excluded.auth,
                "registered_at": stmt.excluded.registered_at,
            },
        )
        try:
            self.session.execute(stmt)
            self.session.flush()
            return stored
        except SQLAlchemyError as e:
            logger.error(f"Error upserting registration for {stored.owner_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to upsert registration: {e}") from e

    def list_by_owner(self, owner_id: str) -> List[DeviceRegistration]:
        """Return an owner's registrations, oldest first.

        Stored rows that no longer validate (legacy ``http://`` endpoints,
        blank keys) are logged and skipped.
        """
        try:
            stmt = (
                select(PushSubscriptionModel)
                .where(PushSubscriptionModel.user_id == owner_id)
                .order_by(PushSubscriptionModel.registered_at.asc())
            )
            rows = self.session.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Error listing registrations for {owner_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list registrations: {e}") from e

        registrations = []
        for row in rows:
            try:
                registrations.append(row.to_domain())
            except ValueError as e:
                logger.warning(
                    f"Skipping invalid stored registration: {e}",
                    extra={"event": "registration.invalid_skipped", "owner_id": row.user_id, "endpoint": row.endpoint},
                )
        return registrations

    def delete(self, owner_id: str, endpoint: str) -> bool:
        """Delete a registration if present; returns whether a row was removed."""
        try:
            result = self.session.execute(
                delete(PushSubscriptionModel).where(
                    PushSubscriptionModel.user_id == owner_id,
                    PushSubscriptionModel.endpoint == endpoint,
                )
            )
            self.session.flush()
            return result.rowcount > 0
        except SQLAlchemyError as e:
            logger.error(f"Error deleting registration for {owner_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to delete registration: {e}") from e


class PostingEventRepository:
    """Repository for the inbound posting event log."""

    def __init__(self, session: Session):
        self.session = session

    def add_if_absent(self, posting_id: str, record: Dict[str, Any], received_at: Optional[datetime] = None) -> bool:
        """Record a pending event; returns False when the posting was already recorded."""
        stmt = (
            sqlite_insert(PostingEventModel)
            .values(
                posting_id=posting_id,
                record=json.dumps(record, default=str, ensure_ascii=False),
                status=EventStatus.PENDING.value,
                received_at=format_for_storage(received_at or utc_now()),
            )
            .on_conflict_do_nothing(index_elements=[PostingEventModel.posting_id])
        )
        try:
            result = self.session.execute(stmt)
            self.session.flush()
            return result.rowcount > 0
        except SQLAlchemyError as e:
            logger.error(f"Error recording event {posting_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to record posting event: {e}") from e

    def get(self, posting_id: str) -> Optional[PostingEvent]:
        try:
            row = self.session.get(PostingEventModel, posting_id)
            return row.to_domain() if row is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Error loading event {posting_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to load posting event: {e}") from e

    def claim(self, posting_id: str, claimed_at: Optional[datetime] = None) -> Optional[PostingEvent]:
        """Move one pending event to ``claimed``.

        Returns:
            The claimed event, or None if it is unknown or no longer pending
        """
        try:
            result = self.session.execute(
                update(PostingEventModel)
                .where(
                    PostingEventModel.posting_id == posting_id,
                    PostingEventModel.status == EventStatus.PENDING.value,
                )
                .values(
                    status=EventStatus.CLAIMED.value,
                    claimed_at=format_for_storage(claimed_at or utc_now()),
                )
            )
            self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Error claiming event {posting_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to claim posting event: {e}") from e

        if result.rowcount == 0:
            return None
        return self.get(posting_id)

    def claim_pending(self, limit: int, claimed_at: Optional[datetime] = None) -> List[PostingEvent]:
        """Claim up to ``limit`` pending events, oldest first."""
        try:
            stmt = (
                select(PostingEventModel.posting_id)
                .where(PostingEventModel.status == EventStatus.PENDING.value)
                .order_by(PostingEventModel.received_at.asc())
                .limit(limit)
            )
            posting_ids = list(self.session.execute(stmt).scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error selecting pending events: {e}", exc_info=True)
            raise PersistenceError(f"Failed to select pending events: {e}") from e

        claimed = []
        for posting_id in posting_ids:
            event = self.claim(posting_id, claimed_at)
            if event is not None:
                claimed.append(event)
        return claimed

    def finish(
        self,
        posting_id: str,
        status: EventStatus,
        error: Optional[str] = None,
        finished_at: Optional[datetime] = None,
    ) -> None:
        """Record the final status of a claimed event.

        Raises:
            RecordNotFoundError: If no event exists for ``posting_id``
            PersistenceError: If database error occurs
        """
        try:
            result = self.session.execute(
                update(PostingEventModel)
                .where(PostingEventModel.posting_id == posting_id)
                .values(
                    status=status.value,
                    error=error,
                    finished_at=format_for_storage(finished_at or utc_now()),
                )
            )
            self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Error finishing event {posting_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update posting event: {e}") from e

        if result.rowcount == 0:
            raise RecordNotFoundError(f"Posting event {posting_id} not found")

    def count_by_status(self) -> Dict[str, int]:
        """Return the number of events in each status."""
        try:
            rows = self.session.execute(select(PostingEventModel.status)).scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Error counting events: {e}", exc_info=True)
            raise PersistenceError(f"Failed to count posting events: {e}") from e

        counts: Dict[str, int] = {}
        for status in rows:
            counts[status] = counts.get(status, 0) + 1
        return counts
