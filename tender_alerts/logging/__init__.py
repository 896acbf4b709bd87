"""Structured logging helpers shared by every component of the alert engine."""

import logging
from typing import Optional

from .context import log_context, new_run_id, run_context


class ComponentLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges its component field with per-call extras."""

    def process(self, msg, kwargs):
        extra = kwargs.get("extra", {})
        # Call-site fields win over the adapter's defaults
        kwargs["extra"] = {**self.extra, **extra}
        return msg, kwargs


def get_logger(name: str, component: Optional[str] = None):
    """Get a logger that stamps every record with a component field.

    Args:
        name: Logger name (typically __name__)
        component: Optional component identifier (matching, delivery, scheduler...)

    Returns:
        Logger or ComponentLoggerAdapter instance

    Example:
        >>> logger = get_logger(__name__, component="orchestrator")
        >>> logger.info("Run started", extra={"event": "alerts.run.started"})
    """
    logger = logging.getLogger(name)

    if component:
        return ComponentLoggerAdapter(logger, {"component": component})

    return logger


__all__ = [
    "ComponentLoggerAdapter",
    "get_logger",
    "log_context",
    "new_run_id",
    "run_context",
]
