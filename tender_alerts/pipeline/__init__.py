"""Processing orchestrator and run result models."""

from .models import RunError, RunMode, RunResult
from .runner import AlertProcessor

__all__ = ["AlertProcessor", "RunError", "RunMode", "RunResult"]
