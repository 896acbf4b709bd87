"""Utility functions for time handling."""

from .timestamps import (
    days_until,
    ensure_utc,
    format_display_date,
    format_timestamp,
    normalize_time_of_day,
    to_local,
    utc_now,
)

__all__ = [
    "utc_now",
    "ensure_utc",
    "days_until",
    "to_local",
    "format_display_date",
    "format_timestamp",
    "normalize_time_of_day",
]
