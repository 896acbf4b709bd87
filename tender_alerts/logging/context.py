"""Scoped logging context.

Fields bound here are stamped onto every record emitted inside the scope by
``ContextualFilter``. A batch run binds ``run_id`` and ``run_mode`` once
through ``run_context``; the orchestrator narrows that with ``owner_id`` while
it dispatches, and the scheduler adds ``job_name``.

Storage is a ContextVar, so two scheduler jobs interleaving on the event loop
each see only their own fields.
"""

from contextvars import ContextVar, Token
from typing import Any, Dict, Optional
from uuid import uuid4

_fields: ContextVar[Dict[str, Any]] = ContextVar("alert_log_context", default={})


def new_run_id() -> str:
    """Short random id tying together the log lines of one batch run."""
    return uuid4().hex[:12]


def get_log_context() -> Dict[str, Any]:
    return _fields.get().copy()


def push_log_context(**kwargs) -> Token:
    """Bind fields on top of the current ones. None values are not bound.

    Returns:
        Token to hand back to pop_log_context()
    """
    bound = {key: value for key, value in kwargs.items() if value is not None}
    return _fields.set({**_fields.get(), **bound})


def pop_log_context(token: Token) -> None:
    _fields.reset(token)


def clear_log_context() -> None:
    """Drop every bound field (tests only)."""
    _fields.set({})


class log_context:
    """Bind fields for the duration of a ``with`` block.

    Example:
        >>> with log_context(owner_id="owner-a"):
        ...     logger.info("Dispatching summary")
    """

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.token: Optional[Token] = None

    def __enter__(self):
        self.token = push_log_context(**self.kwargs)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.token is not None:
            pop_log_context(self.token)
            self.token = None
        return False


class run_context(log_context):
    """Scope for one batch run: binds run_id and run_mode plus any extra fields."""

    def __init__(self, run_id: str, run_mode: str, **kwargs):
        super().__init__(run_id=run_id, run_mode=run_mode, **kwargs)
        self.run_id = run_id
