"""Predicate evaluation for saved job alerts.

``matches`` decides whether a posting satisfies a saved search. Each field of
the predicate is checked by its own rule and the rules are AND-ed together.
A criterion left at its "no constraint" value always passes. A posting that
leaves workplace, employment, salary, experience or languages unspecified is
not rejected on that field; a blank location or status is.

``AlertMatcher`` applies the same decision to a collection of alerts, and is
the single place both the push dispatcher and the in-app notifier ask
"who wants to hear about this posting?".
"""

import logging
from typing import Callable, Iterable, List, Tuple

from job_alerts.domain.models import (
    EXPERIENCE_RANGE_CEILING,
    AlertPredicate,
    JobPosting,
    StatusFilter,
    WorkplaceType,
)

from .models import MatchResult

logger = logging.getLogger(__name__)


def _search_rule(posting: JobPosting, predicate: AlertPredicate) -> bool:
    if not predicate.search_text:
        return True
    needle = predicate.search_text.casefold()
    return needle in posting.title.casefold() or needle in posting.company.casefold()


def _status_rule(posting: JobPosting, predicate: AlertPredicate) -> bool:
    if predicate.status_filter == StatusFilter.ANY:
        return True
    return posting.status is not None and posting.status.value == predicate.status_filter.value


def _workplace_rule(posting: JobPosting, predicate: AlertPredicate) -> bool:
    if not predicate.workplace_set or posting.workplace_type == WorkplaceType.UNSPECIFIED:
        return True
    return posting.workplace_type in predicate.workplace_set


def _employment_rule(posting: JobPosting, predicate: AlertPredicate) -> bool:
    if not predicate.employment_set or not posting.employment_type:
        return True
    # Substring test, so "Full-time" matches "Full-time, Permanent"
    return any(wanted in posting.employment_type for wanted in predicate.employment_set)


def _location_rule(posting: JobPosting, predicate: AlertPredicate) -> bool:
    if not predicate.location_substring:
        return True
    return predicate.location_substring.casefold() in posting.location.casefold()


def _salary_rule(posting: JobPosting, predicate: AlertPredicate) -> bool:
    if predicate.min_salary == 0:
        return True
    if posting.salary_min is None and posting.salary_max is None:
        return True
    best = max(posting.salary_max or 0, posting.salary_min or 0, 0)
    return best >= predicate.min_salary


def _skills_rule(posting: JobPosting, predicate: AlertPredicate) -> bool:
    if not predicate.skill_set:
        return True
    return predicate.skill_set <= posting.required_skills


def _experience_rule(posting: JobPosting, predicate: AlertPredicate) -> bool:
    years = posting.required_experience_years
    if years is None:
        return True
    low, high = predicate.experience_range
    if years < low:
        return False
    # The slider's top value reads "30+": no upper limit
    return high >= EXPERIENCE_RANGE_CEILING or years <= high


def _languages_rule(posting: JobPosting, predicate: AlertPredicate) -> bool:
    if not predicate.language_set or not posting.required_languages:
        return True
    return all(language in posting.required_languages for language in predicate.language_set)


RULES: Tuple[Tuple[str, Callable[[JobPosting, AlertPredicate], bool]], ...] = (
    ("search", _search_rule),
    ("status", _status_rule),
    ("workplace", _workplace_rule),
    ("employment", _employment_rule),
    ("location", _location_rule),
    ("salary", _salary_rule),
    ("skills", _skills_rule),
    ("experience", _experience_rule),
    ("languages", _languages_rule),
)


def evaluate(posting: JobPosting, predicate: AlertPredicate) -> MatchResult:
    """Evaluate every field rule and report which ones failed."""
    failed = [name for name, rule in RULES if not rule(posting, predicate)]
    return MatchResult(is_match=not failed, failed_rules=failed)


def matches(posting: JobPosting, predicate: AlertPredicate) -> bool:
    """Return True when ``posting`` satisfies every criterion of ``predicate``.

    Pure and total: never raises for a validated posting and predicate.
    Stops at the first failing rule.
    """
    return all(rule(posting, predicate) for _, rule in RULES)


class AlertMatcher:
    """Applies ``matches`` across a collection of saved alerts."""

    def __init__(self, logger_instance: logging.Logger = None):
        self.logger = logger_instance or logger

    def matching_alerts(self, posting: JobPosting, alerts: Iterable[AlertPredicate]) -> List[AlertPredicate]:
        """Return the alerts ``posting`` satisfies, in input order."""
        matched = []
        for alert in alerts:
            result = evaluate(posting, alert)
            if result.is_match:
                matched.append(alert)
            else:
                self.logger.debug(
                    "Alert rejected posting",
                    extra={
                        "event": "match.rejected",
                        "posting_id": posting.id,
                        "alert_id": alert.id,
                        "owner_id": alert.owner_id,
                        "failed_rules": ",".join(result.failed_rules),
                    },
                )
        return matched

    def matching_owners(self, posting: JobPosting, alerts: Iterable[AlertPredicate]) -> List[str]:
        """Return the distinct owners of matching alerts, in first-seen order."""
        return distinct_owners(self.matching_alerts(posting, alerts))


def distinct_owners(alerts: Iterable[AlertPredicate]) -> List[str]:
    """Owners of ``alerts`` with repeats removed; an owner with several alerts appears once."""
    owners = []
    seen = set()
    for alert in alerts:
        if alert.owner_id not in seen:
            seen.add(alert.owner_id)
            owners.append(alert.owner_id)
    return owners
