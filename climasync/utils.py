"""Utility functions for climasync.

This module provides common helper functions for datetime handling,
identifier normalisation and small collection helpers.
"""

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from dateutil import parser as dateutil_parser  # type: ignore[import-untyped]


def parse_datetime(value: str | datetime | None) -> datetime | None:
    """Parse ISO8601 timestamp string into timezone-aware UTC datetime.

    Args:
        value: ISO8601 timestamp string, datetime object, or None

    Returns:
        Parsed timezone-aware datetime in UTC, or None if input is None

    Raises:
        ValueError: If timestamp format is invalid

    Example:
        >>> dt = parse_datetime("2024-01-15T10:30:00Z")
        >>> dt.tzinfo
        datetime.timezone.utc
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    dt = dateutil_parser.isoparse(value)

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def utc_now() -> datetime:
    """Get current UTC timestamp as timezone-aware datetime."""
    return datetime.now(UTC)


def format_iso(dt: datetime | None) -> str | None:
    """Format datetime as fixed-width ISO8601 string with 'Z' suffix.

    Microseconds are always rendered so that lexical order of two formatted
    timestamps equals their chronological order.

    Args:
        dt: Datetime object or None

    Returns:
        ISO8601 formatted string or None if input is None

    Example:
        >>> dt = datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
        >>> format_iso(dt)
        '2024-01-15T10:30:00.000000Z'
    """
    if dt is None:
        return None
    dt = parse_datetime(dt)
    return dt.isoformat(timespec="microseconds").replace("+00:00", "Z")


def utc_now_iso() -> str:
    """Get current UTC timestamp as fixed-width ISO8601 string."""
    return format_iso(utc_now())  # type: ignore[return-value]


def today_iso() -> str:
    """Current UTC date as ``YYYY-MM-DD``."""
    return utc_now().date().isoformat()


def new_id() -> str:
    """Generate a fresh row identifier."""
    return str(uuid4())


def temp_id() -> str:
    """Generate a temporary identifier for a row not yet confirmed by the store."""
    return f"temp-{uuid4().hex}"


def is_temp_id(value: str) -> bool:
    """Check whether an identifier was produced by :func:`temp_id`."""
    return value.startswith("temp-")


def normalize_id(id_value: str | int | None) -> str | None:
    """Normalize ID value to string format.

    Example:
        >>> normalize_id(123)
        '123'
        >>> normalize_id(None)
    """
    if id_value is None:
        return None
    return str(id_value)


def unique_ids(values: Iterable[str | int | None]) -> list[str]:
    """Distinct, non-empty ids in first-seen order.

    Used to build the key set for batched relation lookups.

    Example:
        >>> unique_ids(["a", None, "b", "a"])
        ['a', 'b']
    """
    seen: dict[str, None] = {}
    for value in values:
        normalized = normalize_id(value)
        if normalized:
            seen.setdefault(normalized, None)
    return list(seen)


def chunk_list(items: list[Any], chunk_size: int) -> list[list[Any]]:
    """Split list into chunks of specified size.

    Example:
        >>> chunk_list([1, 2, 3, 4, 5], 2)
        [[1, 2], [3, 4], [5]]
    """
    return [items[i : i + chunk_size] for i in range(0, len(items), chunk_size)]
