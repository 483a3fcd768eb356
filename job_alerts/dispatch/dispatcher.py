"""Fan-out of one posting event to every interested device."""

import contextvars
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional, Tuple

from job_alerts.domain.models import DeviceRegistration, JobPosting
from job_alerts.logging import get_logger
from job_alerts.logging.context import log_context
from job_alerts.matching import AlertMatcher, distinct_owners
from job_alerts.notifications.models import DeliveryOutcome, DeliveryResult, PushPayload
from job_alerts.notifications.payloads import build_push_payload
from job_alerts.notifications.webpush_client import PushTransport
from job_alerts.persistence.exceptions import StoreUnavailable
from job_alerts.persistence.store import SubscriptionStore
from job_alerts.utils.timestamps import utc_now

from .models import DispatchSummary

logger = get_logger(__name__, component="dispatch")

DEFAULT_MAX_WORKERS = 8


class AlertDispatcher:
    """
    Delivers a push message for a new posting to every matching subscriber.

    One dispatch runs these steps:
    1. Scan: snapshot every saved alert from the store
    2. Filter: keep alerts the posting matches and dedupe their owners
    3. Resolve: read each owner's device registrations
    4. Deliver: send one payload per (owner, endpoint) on a bounded thread pool
    5. Reconcile: delete registrations the push service reported gone
    6. Report: return a DispatchSummary

    Store access happens on the calling thread; only the sends run on workers.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        transport: PushTransport,
        matcher: Optional[AlertMatcher] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        """
        Args:
            store: Source of alerts and registrations, and target of pruning
            transport: Sends one payload to one registration
            matcher: Shared alert matcher (a default one is created if omitted)
            max_workers: Upper bound on concurrent sends
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.store = store
        self.transport = transport
        self.matcher = matcher or AlertMatcher()
        self.max_workers = max_workers

    def dispatch(self, posting: JobPosting) -> DispatchSummary:
        """
        Fan out one posting-created event.

        Returns:
            DispatchSummary describing every delivery attempt and prune

        Raises:
            StoreUnavailable: If the alert snapshot cannot be read; nothing is
                sent in that case
        """
        summary = DispatchSummary(posting_id=posting.id, started_at=utc_now())

        with log_context(posting_id=posting.id):
            logger.info(
                "Dispatch started",
                extra={"event": "dispatch.started", "title": posting.title, "company": posting.company},
            )

            try:
                alerts = self.store.list_all_alerts()
            except StoreUnavailable as e:
                logger.error(
                    f"Dispatch aborted: could not read alerts: {e}",
                    extra={"event": "dispatch.scan_failed"},
                )
                raise

            matched = self.matcher.matching_alerts(posting, alerts)
            summary.alerts_scanned = len(alerts)
            summary.alerts_matched = len(matched)
            summary.owner_ids = distinct_owners(matched)

            logger.info(
                f"Posting matched {len(matched)} of {len(alerts)} alerts",
                extra={
                    "event": "dispatch.matched",
                    "alerts_scanned": summary.alerts_scanned,
                    "alerts_matched": summary.alerts_matched,
                    "owner_count": len(summary.owner_ids),
                },
            )

            targets = self._resolve_registrations(summary)
            if targets:
                summary.results = self._deliver(targets, build_push_payload(posting))
            self._reconcile(summary)

            summary.finished_at = utc_now()
            logger.info(
                "Dispatch completed",
                extra={
                    "event": "dispatch.completed",
                    "duration_ms": int(summary.duration_seconds * 1000),
                    "devices": len(summary.results),
                    "sent": summary.sent_count,
                    "failed": summary.failed_count,
                    "pruned": len(summary.pruned),
                    "owner_errors": len(summary.owner_errors),
                    "had_errors": summary.had_errors,
                },
            )

        return summary

    def _resolve_registrations(self, summary: DispatchSummary) -> List[DeviceRegistration]:
        """Collect one registration per (owner, endpoint); unreadable owners are skipped."""
        targets: List[DeviceRegistration] = []
        seen = set()

        for owner_id in summary.owner_ids:
            try:
                registrations = self.store.list_registrations(owner_id)
            except StoreUnavailable as e:
                summary.owner_errors[owner_id] = str(e)
                logger.warning(
                    f"Skipping owner: registrations unavailable: {e}",
                    extra={"event": "dispatch.owner_skipped", "owner_id": owner_id},
                )
                continue

            if not registrations:
                logger.debug(
                    "Owner has no registered devices",
                    extra={"event": "dispatch.owner_without_devices", "owner_id": owner_id},
                )

            for registration in registrations:
                key = (registration.owner_id, registration.endpoint)
                if key not in seen:
                    seen.add(key)
                    targets.append(registration)

        return targets

    def _deliver(self, targets: List[DeviceRegistration], payload: PushPayload) -> List[DeliveryResult]:
        """Send ``payload`` to every target concurrently; results keep target order."""
        results: Dict[Tuple[str, str], DeliveryResult] = {}

        with ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(targets)), thread_name_prefix="push-send"
        ) as executor:
            futures = {
                # Each worker gets its own copy of the logging context
                executor.submit(contextvars.copy_context().run, self._send_one, registration, payload): registration
                for registration in targets
            }
            for future in as_completed(futures):
                registration = futures[future]
                results[(registration.owner_id, registration.endpoint)] = future.result()

        return [results[(registration.owner_id, registration.endpoint)] for registration in targets]

    def _send_one(self, registration: DeviceRegistration, payload: PushPayload) -> DeliveryResult:
        try:
            return self.transport.send(registration, payload)
        except Exception as e:
            logger.error(
                f"Transport raised while sending: {e}",
                extra={"event": "delivery.crashed", "owner_id": registration.owner_id, "error_type": type(e).__name__},
                exc_info=True,
            )
            return DeliveryResult(
                owner_id=registration.owner_id,
                endpoint=registration.endpoint,
                outcome=DeliveryOutcome.FAILED_TEMPORARY,
                detail=f"{type(e).__name__}: {e}",
            )

    def _reconcile(self, summary: DispatchSummary) -> None:
        """Prune registrations that failed permanently; note temporary failures."""
        for result in summary.results:
            if result.outcome == DeliveryOutcome.FAILED_TEMPORARY:
                logger.warning(
                    f"Temporary delivery failure left in place: {result.detail}",
                    extra={"event": "delivery.temporary_failure", "owner_id": result.owner_id},
                )
                continue
            if result.outcome != DeliveryOutcome.FAILED_PERMANENT:
                continue

            key = (result.owner_id, result.endpoint)
            try:
                deleted = self.store.delete_registration(result.owner_id, result.endpoint)
            except StoreUnavailable as e:
                summary.prune_errors[key] = str(e)
                logger.error(
                    f"Failed to prune dead registration: {e}",
                    extra={"event": "registration.prune_failed", "owner_id": result.owner_id},
                )
                continue

            if deleted:
                summary.pruned.append(key)
                logger.info(
                    "Pruned dead registration",
                    extra={
                        "event": "registration.pruned",
                        "owner_id": result.owner_id,
                        "status_code": result.status_code,
                    },
                )
            else:
                logger.debug(
                    "Dead registration was already removed",
                    extra={"event": "registration.already_removed", "owner_id": result.owner_id},
                )
