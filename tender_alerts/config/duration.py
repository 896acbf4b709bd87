"""Duration parsing for configuration values such as windows and retention."""

import re
from datetime import timedelta

_UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 604800,
}

_ISO_PATTERN = re.compile(
    r"^P(?:(\d+)W)?(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?)?$"
)
_HUMAN_PATTERN = re.compile(r"(\d+)\s*([smhdw])")


class DurationParseError(ValueError):
    """Raised when a duration string cannot be parsed."""

    pass


def parse_duration(duration_str: str) -> int:
    """Parse a duration string to seconds.

    Accepts human-readable values ("30s", "15m", "24h", "7d", "1w", "1h30m")
    and ISO-8601 durations ("PT15M", "P7D", "P1W").

    Raises:
        DurationParseError: If the string is empty, malformed or zero

    Examples:
        >>> parse_duration("24h")
        86400
        >>> parse_duration("P7D")
        604800
    """
    if not isinstance(duration_str, str):
        raise DurationParseError(f"Duration must be a string, got {type(duration_str).__name__}")

    duration_str = duration_str.strip()
    if not duration_str:
        raise DurationParseError("Duration string cannot be empty")

    if duration_str.upper().startswith("P"):
        total = _parse_iso8601(duration_str.upper())
    else:
        total = _parse_human_readable(duration_str)

    if total == 0:
        raise DurationParseError(f"Duration cannot be zero: '{duration_str}'")

    return total


def parse_timedelta(duration_str: str) -> timedelta:
    """Same as parse_duration() but returns a timedelta."""
    return timedelta(seconds=parse_duration(duration_str))


def _parse_iso8601(duration_str: str) -> int:
    match = _ISO_PATTERN.match(duration_str)
    if not match or duration_str in ("P", "PT"):
        raise DurationParseError(
            f"Invalid ISO-8601 duration format: '{duration_str}'. "
            "Expected format like 'P7D', 'PT24H' or 'PT15M'"
        )

    weeks, days, hours, minutes, seconds = match.groups()
    total = 0
    if weeks:
        total += int(weeks) * _UNIT_SECONDS["w"]
    if days:
        total += int(days) * _UNIT_SECONDS["d"]
    if hours:
        total += int(hours) * _UNIT_SECONDS["h"]
    if minutes:
        total += int(minutes) * _UNIT_SECONDS["m"]
    if seconds:
        total += int(float(seconds))
    return total


def _parse_human_readable(duration_str: str) -> int:
    lowered = duration_str.lower()
    matches = _HUMAN_PATTERN.findall(lowered)
    if not matches:
        raise DurationParseError(
            f"Invalid duration format: '{duration_str}'. "
            "Expected format like '15m', '24h', '7d', or combinations like '1h30m'"
        )

    # Reject leftovers such as "7days" or "1h-30m"
    parsed = "".join(f"{num}{unit}" for num, unit in matches)
    if parsed != re.sub(r"\s+", "", lowered):
        raise DurationParseError(
            f"Invalid characters in duration: '{duration_str}'. "
            "Use only digits and units: s, m, h, d, w"
        )

    return sum(int(num) * _UNIT_SECONDS[unit] for num, unit in matches)


def validate_duration_range(
    duration_seconds: int,
    min_seconds: int,
    max_seconds: int,
    label: str = "Duration",
) -> None:
    """Check that a parsed duration lies within [min_seconds, max_seconds].

    Raises:
        DurationParseError: If the duration is outside the range
    """
    if duration_seconds < min_seconds:
        raise DurationParseError(
            f"{label} too short: {humanize_seconds(duration_seconds)}. "
            f"Minimum is {humanize_seconds(min_seconds)}."
        )
    if duration_seconds > max_seconds:
        raise DurationParseError(
            f"{label} too long: {humanize_seconds(duration_seconds)}. "
            f"Maximum is {humanize_seconds(max_seconds)}."
        )


def humanize_seconds(seconds: int) -> str:
    """Render seconds as the largest whole unit, e.g. '15 minutes', '7 days'."""
    if seconds < 60:
        value, unit = seconds, "second"
    elif seconds < 3600:
        value, unit = seconds // 60, "minute"
    elif seconds < 86400:
        value, unit = seconds // 3600, "hour"
    else:
        value, unit = seconds // 86400, "day"
    return f"{value} {unit}{'s' if value != 1 else ''}"
