"""UTC timestamp helpers shared by the domain and persistence layers."""

from datetime import datetime, timezone
from typing import Optional

# Storage format for timestamps persisted as text columns
STORAGE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Example:
        >>> utc_now().tzinfo == timezone.utc
        True
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure a datetime is timezone-aware and in UTC.

    Naive datetimes are treated as UTC; aware datetimes are converted.

    Args:
        dt: Datetime to convert (can be None)

    Returns:
        Timezone-aware datetime in UTC, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def format_for_storage(dt: Optional[datetime]) -> Optional[str]:
    """Format a datetime as the ISO 8601 text stored in the database."""
    dt_utc = ensure_utc(dt)
    if dt_utc is None:
        return None
    return dt_utc.strftime(STORAGE_FORMAT)


def parse_from_storage(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored ISO 8601 string back to an aware UTC datetime.

    Accepts values with or without microseconds and with or without the
    trailing ``Z``.

    Args:
        value: Stored timestamp text

    Returns:
        Timezone-aware datetime in UTC or None
    """
    if not value:
        return None

    cleaned = value.rstrip("Z")
    try:
        dt = datetime.strptime(cleaned, "%Y-%m-%dT%H:%M:%S.%f")
    except ValueError:
        dt = datetime.strptime(cleaned, "%Y-%m-%dT%H:%M:%S")

    return dt.replace(tzinfo=timezone.utc)
