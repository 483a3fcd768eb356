"""Interval strings used by the event-source settings.

Two spellings are accepted:
- compact units, optionally combined: ``30s``, ``5m``, ``1h``, ``1m30s``
- ISO-8601 durations: ``PT30S``, ``PT5M``, ``PT1H30M``, ``P1D``
"""

import re

_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}

_ISO_PATTERN = re.compile(
    r"^P(?:(?P<d>\d+)D)?(?:T(?:(?P<h>\d+)H)?(?:(?P<m>\d+)M)?(?:(?P<s>\d+(?:\.\d+)?)S)?)?$"
)
_COMPACT_PART = re.compile(r"(\d+)([smhd])")
_COMPACT_PATTERN = re.compile(r"^(?:\d+[smhd])+$")


class DurationParseError(ValueError):
    """Raised when an interval string is malformed or out of range."""


def parse_duration(text: str) -> int:
    """Return the number of whole seconds ``text`` denotes.

    Raises:
        DurationParseError: If the string is empty, malformed or zero

    Examples:
        >>> parse_duration("30s")
        30
        >>> parse_duration("PT1M30S")
        90
    """
    cleaned = re.sub(r"\s+", "", text or "")
    if not cleaned:
        raise DurationParseError("Duration string cannot be empty")

    if cleaned[0] in "pP":
        seconds = _parse_iso(cleaned.upper())
    else:
        seconds = _parse_compact(cleaned.lower())

    if seconds == 0:
        raise DurationParseError(f"Duration cannot be zero: '{text}'")
    return seconds


def _parse_iso(text: str) -> int:
    match = _ISO_PATTERN.match(text)
    if not match or text in ("P", "PT") or text.endswith("T"):
        raise DurationParseError(
            f"Invalid ISO-8601 duration: '{text}'. Expected e.g. 'PT30S', 'PT5M' or 'PT1H30M'"
        )
    parts = match.groupdict()
    total = 0.0
    for unit in ("d", "h", "m", "s"):
        if parts[unit]:
            total += float(parts[unit]) * _UNIT_SECONDS[unit]
    return int(total)


def _parse_compact(text: str) -> int:
    if not _COMPACT_PATTERN.match(text):
        raise DurationParseError(
            f"Invalid duration: '{text}'. Use digits with s, m, h or d, e.g. '30s', '5m', '1m30s'"
        )
    return sum(int(amount) * _UNIT_SECONDS[unit] for amount, unit in _COMPACT_PART.findall(text))


def check_duration_range(seconds: int, minimum: int, maximum: int, label: str = "Interval") -> None:
    """Reject durations outside ``[minimum, maximum]`` seconds.

    Raises:
        DurationParseError: If ``seconds`` falls outside the range
    """
    if seconds < minimum:
        raise DurationParseError(
            f"{label} too short: {describe_seconds(seconds)}. Minimum is {describe_seconds(minimum)}."
        )
    if seconds > maximum:
        raise DurationParseError(
            f"{label} too long: {describe_seconds(seconds)}. Maximum is {describe_seconds(maximum)}."
        )


def describe_seconds(seconds: int) -> str:
    """Render a second count in its largest whole unit, e.g. ``"5 minutes"``."""
    for size, name in ((86400, "day"), (3600, "hour"), (60, "minute")):
        if seconds >= size:
            amount = seconds // size
            return f"{amount} {name}{'s' if amount != 1 else ''}"
    return f"{seconds} second{'s' if seconds != 1 else ''}"
