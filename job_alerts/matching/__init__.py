"""Matching of job postings against saved alert predicates.

This module provides:
- matches: the boolean predicate evaluator
- evaluate: the same decision with the names of failing rules
- AlertMatcher: collection-level matching and owner deduplication
- MatchResult: result of ``evaluate``
"""

from .engine import AlertMatcher, distinct_owners, evaluate, matches
from .models import MatchResult

__all__ = [
    "AlertMatcher",
    "MatchResult",
    "distinct_owners",
    "evaluate",
    "matches",
]
