"""Durable inbox of posting-created events.

Events are recorded once per posting id and claimed before they are
dispatched. A claimed event is never handed out again, so a crash in the
middle of a dispatch can drop that event's pushes but can never send them
twice.
"""

import threading
from typing import Any, Dict, List, Optional

from job_alerts.dispatch import AlertDispatcher, DispatchSummary
from job_alerts.domain.exceptions import ValidationError
from job_alerts.domain.models import JobPosting
from job_alerts.logging import get_logger
from job_alerts.logging.context import log_context
from job_alerts.persistence.exceptions import StoreUnavailable
from job_alerts.persistence.store import PostingEventStore

logger = get_logger(__name__, component="inbox")

DEFAULT_BATCH_SIZE = 20


class PostingInbox:
    """Accepts posting-created events and feeds them to the dispatcher one at a time."""

    def __init__(
        self,
        event_store: PostingEventStore,
        dispatcher: AlertDispatcher,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self.event_store = event_store
        self.dispatcher = dispatcher
        self.batch_size = batch_size
        self._lock = threading.Lock()

    @staticmethod
    def parse_event(event: Any) -> JobPosting:
        """Extract and validate the posting carried by a ``{"record": {...}}`` event.

        Raises:
            ValidationError: If the record is missing or the posting is malformed
        """
        if not isinstance(event, dict) or not isinstance(event.get("record"), dict):
            raise ValidationError("Invalid posting event", errors=["record: missing or not an object"])
        return JobPosting.from_record(event["record"])

    def submit(self, event: Dict[str, Any]) -> bool:
        """Record an event for a later ``drain()``.

        Returns:
            False if an event for the same posting was already recorded

        Raises:
            ValidationError: If the event is malformed (nothing is recorded)
            StoreUnavailable: If the event log cannot be written
        """
        posting = self.parse_event(event)
        recorded = self.event_store.record(posting.id, event["record"])
        logger.info(
            "Posting event recorded" if recorded else "Duplicate posting event ignored",
            extra={"event": "inbox.submitted" if recorded else "inbox.duplicate", "posting_id": posting.id},
        )
        return recorded

    def handle_event(self, event: Dict[str, Any]) -> Optional[DispatchSummary]:
        """Record, claim and dispatch one event synchronously.

        Returns:
            The dispatch summary, or None if this posting was already handled

        Raises:
            ValidationError: If the event is malformed
            StoreUnavailable: If the event log or the alert snapshot is unavailable
        """
        posting = self.parse_event(event)
        with self._lock:
            self.event_store.record(posting.id, event["record"])
            if self.event_store.claim(posting.id) is None:
                logger.info(
                    "Posting already dispatched; ignoring event",
                    extra={"event": "inbox.duplicate", "posting_id": posting.id},
                )
                return None
            return self._dispatch_claimed(posting)

    def drain(self) -> List[DispatchSummary]:
        """Dispatch up to ``batch_size`` pending events, oldest first.

        Events are claimed one at a time, right before their dispatch, so an
        interruption leaves only the event in flight claimed. Skipped (returns
        an empty list) while another drain is running. Events that fail are
        marked failed and not retried.
        """
        if not self._lock.acquire(blocking=False):
            logger.warning(
                "Inbox drain skipped: previous drain still in progress",
                extra={"event": "inbox.drain.skipped", "reason": "lock_held"},
            )
            return []

        summaries = []
        attempted = 0
        try:
            while attempted < self.batch_size:
                claimed = self.event_store.claim_pending(1)
                if not claimed:
                    break
                event = claimed[0]
                attempted += 1

                with log_context(event_id=event.posting_id):
                    try:
                        posting = JobPosting.from_record(event.record)
                    except ValidationError as e:
                        self._mark_failed(event.posting_id, str(e))
                        continue
                    try:
                        summaries.append(self._dispatch_claimed(posting))
                    except Exception:
                        # Already marked failed
                        continue
        finally:
            self._lock.release()

        if attempted:
            logger.info(
                f"Drained {attempted} posting events ({len(summaries)} dispatched)",
                extra={"event": "inbox.drain.finished", "attempted": attempted, "dispatched": len(summaries)},
            )
        return summaries

    def _dispatch_claimed(self, posting: JobPosting) -> DispatchSummary:
        try:
            summary = self.dispatcher.dispatch(posting)
        except StoreUnavailable as e:
            self._mark_failed(posting.id, str(e))
            raise
        except Exception as e:
            logger.error(
                f"Unexpected error dispatching posting {posting.id}: {e}",
                extra={"event": "inbox.dispatch_error", "posting_id": posting.id, "error_type": type(e).__name__},
                exc_info=True,
            )
            self._mark_failed(posting.id, f"{type(e).__name__}: {e}")
            raise

        try:
            self.event_store.complete(posting.id)
        except StoreUnavailable as e:
            logger.error(
                f"Could not mark event completed: {e}",
                extra={"event": "inbox.complete_failed", "posting_id": posting.id},
            )
        return summary

    def _mark_failed(self, posting_id: str, error: str) -> None:
        logger.error(
            f"Posting event failed: {error}",
            extra={"event": "inbox.event_failed", "posting_id": posting_id},
        )
        try:
            self.event_store.fail(posting_id, error)
        except StoreUnavailable as e:
            logger.error(
                f"Could not mark event failed: {e}",
                extra={"event": "inbox.fail_record_failed", "posting_id": posting_id},
            )
