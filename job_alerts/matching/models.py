"""Data models for the matching engine."""

from dataclasses import dataclass, field
from typing import List


@dataclass
class MatchResult:
    """Result of evaluating one posting against one alert predicate.

    Attributes:
        is_match: True when every field rule passed
        failed_rules: Names of the field rules that rejected the posting,
            in evaluation order (``search``, ``status``, ``workplace``, ...)
    """

    is_match: bool
    failed_rules: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.is_match
