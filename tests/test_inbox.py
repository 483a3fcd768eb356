"""Tests for the posting event inbox.

Covers:
- Exactly one dispatch per posting id (duplicates and redelivery)
- Claimed events are never handed out again
- Drain batching, ordering and overlap protection
- Invalid records and store failures mark events failed
"""

import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from job_alerts.dispatch import AlertDispatcher
from job_alerts.domain import ValidationError
from job_alerts.domain.events import EventStatus, PostingEvent
from job_alerts.events import PostingInbox
from job_alerts.persistence import StoreUnavailable
from tests.helpers import RecordingTransport, make_alert, make_registration, posting_record

PHONE = "https://fcm.googleapis.com/fcm/send/phone"
T0 = datetime(2025, 11, 3, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def inbox(store, event_store, transport):
    store.add_alert(make_alert("user-1"))
    store.upsert_registration(make_registration("user-1", endpoint=PHONE))
    dispatcher = AlertDispatcher(store=store, transport=transport, max_workers=2)
    return PostingInbox(event_store=event_store, dispatcher=dispatcher, batch_size=2)


class TestParseEvent:
    """Tests for PostingInbox.parse_event."""

    def test_valid_event(self):
        assert PostingInbox.parse_event({"record": posting_record()}).id == "job-1"

    @pytest.mark.parametrize("event", [None, [], {}, {"record": None}, {"record": "job-1"}])
    def test_missing_record(self, event):
        with pytest.raises(ValidationError, match="Invalid posting event"):
            PostingInbox.parse_event(event)

    def test_malformed_posting(self):
        with pytest.raises(ValidationError, match="Invalid job posting"):
            PostingInbox.parse_event({"record": posting_record(job_id=None)})


class TestHandleEvent:
    """Synchronous record-claim-dispatch."""

    def test_dispatches_and_completes(self, inbox, event_store, transport):
        summary = inbox.handle_event({"record": posting_record()})

        assert summary.sent_count == 1
        assert transport.endpoints == [PHONE]
        assert event_store.get("job-1").status == EventStatus.COMPLETED

    def test_duplicate_event_sends_nothing(self, inbox, transport):
        inbox.handle_event({"record": posting_record()})

        assert inbox.handle_event({"record": posting_record()}) is None
        assert transport.endpoints == [PHONE]

    def test_invalid_event_records_nothing(self, inbox, event_store):
        with pytest.raises(ValidationError):
            inbox.handle_event({"record": posting_record(status="archived")})

        assert event_store.counts() == {}

    def test_scan_failure_marks_event_failed(self, event_store, transport):
        store = MagicMock()
        store.list_all_alerts.side_effect = StoreUnavailable("list_all_alerts failed: locked")
        inbox = PostingInbox(event_store=event_store, dispatcher=AlertDispatcher(store=store, transport=transport))

        with pytest.raises(StoreUnavailable):
            inbox.handle_event({"record": posting_record()})

        event = event_store.get("job-1")
        assert event.status == EventStatus.FAILED
        assert "locked" in event.error
        assert inbox.handle_event({"record": posting_record()}) is None
        assert transport.calls == []


class TestSubmitAndDrain:
    """Asynchronous submit followed by drain()."""

    def test_submit_records_once(self, inbox, event_store):
        assert inbox.submit({"record": posting_record()}) is True
        assert inbox.submit({"record": posting_record()}) is False
        assert event_store.counts() == {"pending": 1}

    def test_drain_dispatches_pending_in_batches(self, inbox, event_store, transport):
        for offset, posting_id in enumerate(("a", "b", "c")):
            event_store.record(posting_id, posting_record(job_id=posting_id), received_at=T0 + timedelta(seconds=offset))

        first = inbox.drain()
        second = inbox.drain()
        third = inbox.drain()

        assert [s.posting_id for s in first] == ["a", "b"]
        assert [s.posting_id for s in second] == ["c"]
        assert third == []
        assert len(transport.calls) == 3
        assert event_store.counts() == {"completed": 3}

    def test_drain_after_handle_event_does_not_resend(self, inbox, transport):
        inbox.handle_event({"record": posting_record()})
        inbox.submit({"record": posting_record()})

        assert inbox.drain() == []
        assert len(transport.calls) == 1

    def test_claimed_but_unfinished_event_never_redispatched(self, inbox, event_store, transport):
        """A process that died mid-dispatch leaves the event claimed."""
        inbox.submit({"record": posting_record()})
        event_store.claim("job-1")

        assert inbox.drain() == []
        assert transport.calls == []
        assert event_store.get("job-1").status == EventStatus.CLAIMED

    def test_invalid_stored_record_marked_failed(self, inbox, event_store, transport):
        event_store.record("bad", posting_record(job_id="bad", workplace_type="lunar"), received_at=T0)
        event_store.record("good", posting_record(job_id="good"), received_at=T0 + timedelta(seconds=1))

        summaries = inbox.drain()

        assert [s.posting_id for s in summaries] == ["good"]
        bad = event_store.get("bad")
        assert bad.status == EventStatus.FAILED
        assert "workplace_type" in bad.error

    def test_store_failure_does_not_stop_batch(self, event_store, transport):
        store = MagicMock()
        store.list_all_alerts.side_effect = [
            StoreUnavailable("list_all_alerts failed: locked"),
            [make_alert("user-1")],
        ]
        store.list_registrations.return_value = [make_registration("user-1", endpoint=PHONE)]
        inbox = PostingInbox(event_store=event_store, dispatcher=AlertDispatcher(store=store, transport=transport))
        event_store.record("first", posting_record(job_id="first"), received_at=T0)
        event_store.record("second", posting_record(job_id="second"), received_at=T0 + timedelta(seconds=1))

        summaries = inbox.drain()

        assert [s.posting_id for s in summaries] == ["second"]
        assert event_store.get("first").status == EventStatus.FAILED
        assert event_store.get("second").status == EventStatus.COMPLETED

    def test_unexpected_dispatch_error_marks_event_failed_and_continues(self, event_store, caplog):
        dispatcher = MagicMock()
        dispatcher.dispatch.side_effect = [RuntimeError("boom"), MagicMock(posting_id="second")]
        inbox = PostingInbox(event_store=event_store, dispatcher=dispatcher)
        event_store.record("first", posting_record(job_id="first"), received_at=T0)
        event_store.record("second", posting_record(job_id="second"), received_at=T0 + timedelta(seconds=1))

        summaries = inbox.drain()

        assert [s.posting_id for s in summaries] == ["second"]
        first = event_store.get("first")
        assert first.status == EventStatus.FAILED
        assert first.error == "RuntimeError: boom"
        assert event_store.get("second").status == EventStatus.COMPLETED
        assert any(getattr(r, "event", None) == "inbox.dispatch_error" for r in caplog.records)

    def test_failing_dispatcher_leaves_no_event_claimed(self, event_store):
        dispatcher = MagicMock()
        dispatcher.dispatch.side_effect = RuntimeError("dispatcher down")
        inbox = PostingInbox(event_store=event_store, dispatcher=dispatcher, batch_size=5)
        for offset, posting_id in enumerate(("job-0", "job-1", "job-2")):
            event_store.record(posting_id, posting_record(job_id=posting_id), received_at=T0 + timedelta(seconds=offset))

        assert inbox.drain() == []
        assert inbox.drain() == []
        assert dispatcher.dispatch.call_count == 3
        assert event_store.counts() == {"failed": 3}

    def test_interrupted_drain_leaves_unstarted_events_pending(self, event_store):
        dispatcher = MagicMock()
        dispatcher.dispatch.side_effect = KeyboardInterrupt
        inbox = PostingInbox(event_store=event_store, dispatcher=dispatcher, batch_size=5)
        for offset, posting_id in enumerate(("job-0", "job-1", "job-2")):
            event_store.record(posting_id, posting_record(job_id=posting_id), received_at=T0 + timedelta(seconds=offset))

        with pytest.raises(KeyboardInterrupt):
            inbox.drain()

        assert event_store.get("job-0").status == EventStatus.CLAIMED
        assert event_store.get("job-1").status == EventStatus.PENDING
        assert event_store.get("job-2").status == EventStatus.PENDING

    def test_overlapping_drain_skipped(self):
        entered = threading.Event()
        release = threading.Event()
        dispatcher = MagicMock()

        def slow_dispatch(posting):
            entered.set()
            release.wait(timeout=5)
            return MagicMock(posting_id=posting.id)

        dispatcher.dispatch.side_effect = slow_dispatch
        event_store = MagicMock()
        event_store.claim_pending.side_effect = [[PostingEvent(posting_id="job-1", record=posting_record())], []]
        inbox = PostingInbox(event_store=event_store, dispatcher=dispatcher)

        results = []
        worker = threading.Thread(target=lambda: results.append(inbox.drain()))
        worker.start()
        assert entered.wait(timeout=5)

        assert inbox.drain() == []

        release.set()
        worker.join(timeout=5)
        assert len(results[0]) == 1
