"""
UTC datetime utilities for consistent timezone handling.

Cached payloads carry datetimes as ISO strings; these helpers produce
and parse them at the persistence boundary.
"""

from datetime import UTC, date, datetime


def utc_now() -> datetime:
    """
    Return the current UTC datetime with timezone info.

    Returns:
        Timezone-aware datetime in UTC
    """
    return datetime.now(UTC)


def to_cache_string(value: datetime | date) -> str:
    """
    Format a datetime or date for a cached payload.

    Datetimes use a space separator ("2024-01-31 12:00:00+00:00") so the
    payload value matches the string form used in cache keys.
    """
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    return value.isoformat()


def parse_cached_datetime(value: str | datetime | None) -> datetime | None:
    """
    Parse a datetime written by to_cache_string.

    - None stays None
    - datetime values pass through unchanged
    - ISO strings (either "T" or space separator) are parsed

    Args:
        value: Cached value

    Returns:
        Parsed datetime or None
    """
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def parse_cached_date(value: str | date | None) -> date | None:
    """Parse a date written by to_cache_string."""
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(value)
