"""
UTC timestamp utilities for Mistake Notebook.

All timestamps MUST be in UTC with explicit timezone markers.

This module provides:
- utc_now(): Current time as timezone-aware datetime
- utc_timestamp(): ISO 8601 timestamp string with microseconds and 'Z' suffix
- parse_timestamp(): Parse ISO 8601 string to datetime
- normalize_timestamp(): Re-format any accepted ISO 8601 string canonically
- unix_seconds(): Current time as integer Unix seconds

Stored timestamps always use the canonical microsecond format so that the
lexical order of the TEXT columns in SQLite equals chronological order.
"created_at DESC" and "deleted_at DESC" ordering depends on this.

Examples:
    >>> from mistake_notebook.utils.time import utc_timestamp, parse_timestamp
    >>> timestamp = utc_timestamp()
    >>> timestamp
    '2025-11-02T08:30:45.123456Z'
    >>> parse_timestamp(timestamp).year
    2025
"""

from datetime import UTC, datetime

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now() -> datetime:
    """
    Return current time in UTC with timezone info.

    Returns:
        datetime: Current UTC time with tzinfo=UTC

    Note:
        NEVER use datetime.now() without timezone parameter.
        NEVER use datetime.utcnow() (deprecated, returns naive datetime).
    """
    return datetime.now(UTC)


def format_timestamp(dt: datetime) -> str:
    """
    Format a timezone-aware datetime in the canonical storage format.

    Args:
        dt: Timezone-aware datetime (any offset, converted to UTC)

    Returns:
        str: e.g. "2025-11-02T08:30:45.000000Z"

    Raises:
        ValueError: If dt is naive (missing timezone)
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Datetime must be timezone-aware (use UTC). "
            "Got naive datetime. Use utc_now() or ensure dt has tzinfo set."
        )
    return dt.astimezone(UTC).strftime(TIMESTAMP_FORMAT)


def utc_timestamp() -> str:
    """
    Return the current time as a canonical ISO 8601 string.

    Format: YYYY-MM-DDTHH:MM:SS.ffffffZ

    Returns:
        str: ISO 8601 formatted timestamp in UTC
    """
    return format_timestamp(utc_now())


def parse_timestamp(timestamp_str: str) -> datetime:
    """
    Parse ISO 8601 timestamp string to timezone-aware datetime.

    Accepts the canonical format as well as second-precision strings and
    explicit offsets ("+08:00"). Naive strings are rejected.

    Args:
        timestamp_str: ISO 8601 timestamp string

    Returns:
        datetime: Timezone-aware datetime in UTC

    Raises:
        ValueError: If the string is not ISO 8601 or carries no timezone

    Examples:
        >>> parse_timestamp("2025-11-02T08:30:45Z").tzinfo == UTC
        True
        >>> parse_timestamp("2025-11-02T08:30:45")
        Traceback (most recent call last):
        ...
        ValueError: Timestamp must carry a timezone (UTC 'Z' or offset): 2025-11-02T08:30:45
    """
    try:
        # fromisoformat() only understands the 'Z' suffix from 3.11 on
        parsed = datetime.fromisoformat(timestamp_str.replace("Z", "+00:00"))
    except (ValueError, AttributeError) as e:
        raise ValueError(f"Invalid ISO 8601 timestamp format: {timestamp_str}") from e

    if parsed.tzinfo is None:
        raise ValueError(
            f"Timestamp must carry a timezone (UTC 'Z' or offset): {timestamp_str}"
        )

    return parsed.astimezone(UTC)


def normalize_timestamp(timestamp_str: str | None) -> str | None:
    """
    Re-format an ISO 8601 timestamp in the canonical storage format.

    None passes through unchanged. Used when timestamps come from outside
    the process (backup files, API payloads).
    """
    if timestamp_str is None:
        return None
    return format_timestamp(parse_timestamp(timestamp_str))


def unix_seconds() -> int:
    """Return the current time as integer seconds since the Unix epoch."""
    return int(utc_now().timestamp())
