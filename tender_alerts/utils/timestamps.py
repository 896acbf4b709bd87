"""Timestamp helpers.

All stored and compared instants are timezone-aware UTC. Wall-clock values
(schedule buckets, dates printed in emails) are derived from them in the one
configured scheduling timezone.
"""

import math
import re
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

SECONDS_PER_DAY = 86400


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure a datetime is timezone-aware and in UTC.

    Naive datetimes are treated as UTC; aware ones are converted.

    Example:
        >>> ensure_utc(datetime(2025, 11, 4, 12, 0)).tzinfo == timezone.utc
        True
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def days_until(target: datetime, now: Optional[datetime] = None) -> int:
    """Whole days from now until target, rounded up.

    A closing time 36 hours away is 2 days; one that passed 12 hours ago is 0;
    one that passed 36 hours ago is -1.

    Example:
        >>> start = datetime(2025, 1, 1, tzinfo=timezone.utc)
        >>> days_until(datetime(2025, 1, 2, 12, tzinfo=timezone.utc), start)
        2
    """
    now = ensure_utc(now) or utc_now()
    delta = ensure_utc(target) - now
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)


def to_local(dt: datetime, tz_name: str) -> datetime:
    """Convert an instant to the wall-clock time of the named zone."""
    return ensure_utc(dt).astimezone(ZoneInfo(tz_name))


def format_display_date(dt: Optional[datetime], tz_name: str = "UTC") -> str:
    """Format an instant as a long calendar date, e.g. 'March 5, 2026'.

    Returns an empty string for None so templates can test truthiness.
    """
    if dt is None:
        return ""
    local = to_local(dt, tz_name)
    return f"{local:%B} {local.day}, {local.year}"


def format_timestamp(dt: Optional[datetime]) -> str:
    """Format as ISO 8601 UTC with a 'Z' suffix, or '' for None.

    Example:
        >>> format_timestamp(datetime(2025, 11, 4, 12, 0, tzinfo=timezone.utc))
        '2025-11-04T12:00:00Z'
    """
    dt_utc = ensure_utc(dt)
    if dt_utc is None:
        return ""
    return dt_utc.strftime("%Y-%m-%dT%H:%M:%SZ")


_TIME_OF_DAY = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def normalize_time_of_day(value: str) -> str:
    """Validate a 24h 'H:MM' / 'HH:MM' value and zero-pad it to 'HH:MM'.

    Raises:
        ValueError: If the value is not a valid 24h time

    Example:
        >>> normalize_time_of_day("9:00")
        '09:00'
    """
    match = _TIME_OF_DAY.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError(f"Invalid time '{value}'. Use 24-hour HH:MM format")
    hour, minute = match.groups()
    return f"{int(hour):02d}:{minute}"
