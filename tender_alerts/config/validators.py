"""Soft checks on raw configuration that warn instead of failing."""

import warnings
from typing import Any, Dict, List


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """Inspect the raw config mapping for likely mistakes.

    Args:
        config_dict: Raw configuration dictionary from YAML

    Returns:
        List of warning messages
    """
    warning_messages = []

    scheduler = config_dict.get("scheduler") or {}
    if isinstance(scheduler, dict):
        daily_times = scheduler.get("daily_times")
        if isinstance(daily_times, list):
            stripped = [t.strip().zfill(5) for t in daily_times if isinstance(t, str)]
            duplicates = sorted({t for t in stripped if stripped.count(t) > 1})
            if duplicates:
                warning_messages.append(
                    f"Duplicate daily_times will be registered once: {', '.join(duplicates)}"
                )
            if len(stripped) > 24:
                warning_messages.append(
                    f"{len(stripped)} daily_times configured; each adds a scheduled job"
                )

    processing = config_dict.get("processing") or {}
    if isinstance(processing, dict):
        delay = processing.get("dispatch_delay_ms")
        if isinstance(delay, int) and 0 <= delay < 50:
            warning_messages.append(
                f"dispatch_delay_ms={delay} sends back-to-back; SMTP providers may throttle"
            )

    email = config_dict.get("email") or {}
    if isinstance(email, dict) and email.get("use_tls") is False:
        warning_messages.append("email.use_tls is false; credentials will be sent in clear text")

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    """Emit warning messages using Python's warnings module."""
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
