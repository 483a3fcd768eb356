"""Database schema definition and ORM models.

Three tables back the service:
- ``user_alerts``: saved searches, criteria stored as the client's filter JSON
- ``push_subscriptions``: device registrations, unique per (user, endpoint)
- ``posting_events``: the inbound event log used by the inbox

ORM models convert to and from domain models; timestamps are stored as
ISO 8601 text in UTC.
"""

import json
import logging

from sqlalchemy import Column, Index, String, Text, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from job_alerts.domain.events import EventStatus, PostingEvent
from job_alerts.domain.models import AlertPredicate, DeviceRegistration
from job_alerts.utils.timestamps import format_for_storage, parse_from_storage

logger = logging.getLogger(__name__)

Base = declarative_base()


class AlertModel(Base):
    """ORM model for the ``user_alerts`` table."""

    __tablename__ = "user_alerts"

    id = Column(String(32), primary_key=True, nullable=False)
    user_id = Column(String(255), nullable=False)
    filters = Column(Text, nullable=False)
    created_at = Column(String(50), nullable=False)

    __table_args__ = (
        Index("idx_user_alerts_user", "user_id"),
        Index("idx_user_alerts_created", "created_at"),
    )

    def to_domain(self) -> AlertPredicate:
        """Rebuild the predicate from the stored filter JSON.

        Raises:
            ValidationError: If the stored filters are no longer valid
        """
        return AlertPredicate.from_filters(
            self.user_id,
            json.loads(self.filters),
            alert_id=self.id,
            created_at=parse_from_storage(self.created_at),
        )

    @classmethod
    def from_domain(cls, alert: AlertPredicate) -> "AlertModel":
        return cls(
            id=alert.id,
            user_id=alert.owner_id,
            filters=json.dumps(alert.to_filters(), ensure_ascii=False),
            created_at=format_for_storage(alert.created_at),
        )


class PushSubscriptionModel(Base):
    """ORM model for the ``push_subscriptions`` table.

    The composite primary key enforces one row per (user, endpoint).
    """

    __tablename__ = "push_subscriptions"

    user_id = Column(String(255), primary_key=True, nullable=False)
    endpoint = Column(Text, primary_key=True, nullable=False)
    p256dh = Column(Text, nullable=False)
    auth = Column(Text, nullable=False)
    registered_at = Column(String(50), nullable=False)

    def to_domain(self) -> DeviceRegistration:
        return DeviceRegistration(
            owner_id=self.user_id,
            endpoint=self.endpoint,
            keys={"p256dh": self.p256dh, "auth": self.auth},
            registered_at=parse_from_storage(self.registered_at),
        )


class PostingEventModel(Base):
    """ORM model for the ``posting_events`` table (one row per posting)."""

    __tablename__ = "posting_events"

    posting_id = Column(String(255), primary_key=True, nullable=False)
    record = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default=EventStatus.PENDING.value)
    received_at = Column(String(50), nullable=False)
    claimed_at = Column(String(50), nullable=True)
    finished_at = Column(String(50), nullable=True)
    error = Column(Text, nullable=True)

    __table_args__ = (Index("idx_posting_events_status", "status", "received_at"),)

    def to_domain(self) -> PostingEvent:
        return PostingEvent(
            posting_id=self.posting_id,
            record=json.loads(self.record),
            status=EventStatus(self.status),
            received_at=parse_from_storage(self.received_at),
            claimed_at=parse_from_storage(self.claimed_at),
            finished_at=parse_from_storage(self.finished_at),
            error=self.error,
        )


def create_schema(engine: Engine) -> None:
    """Create all tables and indexes that do not exist yet (idempotent)."""
    Base.metadata.create_all(engine, checkfirst=True)
    tables = inspect(engine).get_table_names()
    logger.info(
        f"Database schema ready. Tables: {', '.join(tables)}",
        extra={"event": "database.schema_ready"},
    )
