"""Session-local notifications for users who have the app open.

While a client is connected it keeps its own alerts in memory and hears
about new postings directly; it needs no registrations and no store
round-trip. The notifier reuses ``AlertMatcher`` so in-app and push
notifications always agree on what matches.
"""

import threading
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from job_alerts.domain.models import AlertPredicate, JobPosting
from job_alerts.logging import get_logger
from job_alerts.matching import AlertMatcher

from .payloads import posting_summary

logger = get_logger(__name__, component="in_app")

IN_APP_TITLE_PREFIX = "New job: "


@dataclass(frozen=True)
class InAppNotice:
    """One notification to show in the running app.

    Attributes:
        title: "New job: <posting title>"
        body: "<company> - <location>"
        tag: Posting id, so the display layer replaces rather than stacks
        alert_ids: Ids of the session's alerts that matched
    """

    title: str
    body: str
    tag: str
    alert_ids: List[Optional[str]] = field(default_factory=list)


class InAppNotifier:
    """Matches incoming postings against one session's alerts."""

    def __init__(self, alerts: Iterable[AlertPredicate] = (), matcher: Optional[AlertMatcher] = None):
        self._alerts = list(alerts)
        self._matcher = matcher or AlertMatcher()
        self._notified: set = set()
        self._lock = threading.Lock()

    def replace_alerts(self, alerts: Iterable[AlertPredicate]) -> None:
        """Swap in the session's current alerts (after a create or delete)."""
        with self._lock:
            self._alerts = list(alerts)

    def notify(self, posting: JobPosting) -> Optional[InAppNotice]:
        """Return a notice if any alert matches and this posting was not shown yet."""
        with self._lock:
            if posting.id in self._notified:
                return None
            alerts = list(self._alerts)

        matched = self._matcher.matching_alerts(posting, alerts)
        if not matched:
            return None

        with self._lock:
            if posting.id in self._notified:
                return None
            self._notified.add(posting.id)

        logger.info(
            "In-app notice raised",
            extra={"event": "in_app.notified", "posting_id": posting.id, "matched_alerts": len(matched)},
        )
        return InAppNotice(
            title=f"{IN_APP_TITLE_PREFIX}{posting.title}",
            body=posting_summary(posting),
            tag=posting.id,
            alert_ids=[alert.id for alert in matched],
        )
