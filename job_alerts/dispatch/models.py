"""Data models for dispatch execution tracking and reporting."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from job_alerts.notifications.models import DeliveryResult


@dataclass
class DispatchSummary:
    """
    Everything that happened while fanning out one posting event.

    Attributes:
        posting_id: Posting that triggered the dispatch
        started_at: UTC timestamp when dispatch began
        finished_at: UTC timestamp when dispatch completed
        alerts_scanned: Number of alerts in the snapshot
        alerts_matched: Number of alerts the posting satisfied
        owner_ids: Distinct owners of matching alerts, first-seen order
        results: One DeliveryResult per (owner, endpoint) attempted
        pruned: (owner_id, endpoint) registrations deleted after permanent failure
        owner_errors: Owners whose registrations could not be read, with the error
        prune_errors: Registrations whose deletion failed, with the error
    """

    posting_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    alerts_scanned: int = 0
    alerts_matched: int = 0
    owner_ids: List[str] = field(default_factory=list)
    results: List[DeliveryResult] = field(default_factory=list)
    pruned: List[Tuple[str, str]] = field(default_factory=list)
    owner_errors: Dict[str, str] = field(default_factory=dict)
    prune_errors: Dict[Tuple[str, str], str] = field(default_factory=dict)

    @property
    def sent_count(self) -> int:
        return sum(1 for result in self.results if result.is_success())

    @property
    def failed_count(self) -> int:
        return sum(1 for result in self.results if not result.is_success())

    @property
    def had_errors(self) -> bool:
        """True if any delivery failed or any owner or prune step errored."""
        return bool(self.failed_count or self.owner_errors or self.prune_errors)

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def deliveries(self) -> List[Dict[str, str]]:
        """The per-device report: ``[{owner_id, endpoint, outcome}]``."""
        return [
            {"owner_id": result.owner_id, "endpoint": result.endpoint, "outcome": result.outcome.value}
            for result in self.results
        ]
