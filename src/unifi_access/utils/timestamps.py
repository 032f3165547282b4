"""Timestamp conversion utilities for Unifi Access API data."""

from datetime import datetime, timezone
from typing import Any, Optional

from dateutil import parser as dateutil_parser


def normalize_timestamp(
    value: Any,
    assume_utc: bool = True,
) -> datetime:
    """Convert various timestamp formats to UTC datetime.

    Handles:
    - int/float: Unix timestamp (auto-detects milliseconds vs seconds)
    - str: ISO format or other parseable formats via dateutil
    - datetime: Returns as-is if aware, converts if naive

    Args:
        value: Timestamp as int (ms or s), float, str, or datetime
        assume_utc: If True, treat naive timestamps as UTC (default True)

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        ValueError: If value cannot be parsed as a timestamp

    Example:
        >>> normalize_timestamp("2024-01-12T20:00:00Z")
        datetime.datetime(2024, 1, 12, 20, 0, tzinfo=datetime.timezone.utc)
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        # Timestamps > 1e12 are milliseconds (after year 2001)
        if value > 1e12:
            value = value / 1000
        return datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str):
        dt = dateutil_parser.parse(value)
    else:
        raise ValueError(f"Cannot parse timestamp: {value!r} (type: {type(value).__name__})")

    if dt.tzinfo is None:
        if assume_utc:
            dt = dt.replace(tzinfo=timezone.utc)
        else:
            # Treat as local time, then convert to UTC
            dt = dt.astimezone(timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)

    return dt


def to_epoch_seconds(value: Optional[Any]) -> Optional[int]:
    """Convert a timestamp to whole seconds since the Unix epoch.

    None passes through so optional request fields serialize as null.

    Example:
        >>> to_epoch_seconds("2024-01-12T20:00:00Z")
        1705089600
    """
    if value is None:
        return None
    return int(normalize_timestamp(value).timestamp())


def epoch_now() -> int:
    """Current time in whole seconds since the Unix epoch."""
    return int(datetime.now(timezone.utc).timestamp())
