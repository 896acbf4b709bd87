"""Persistence layer exceptions.

All persistence exceptions inherit from PersistenceError for easy catching.
"""


class PersistenceError(Exception):
    """Base exception for all persistence layer errors."""

    pass


class DatabaseConnectionError(PersistenceError):
    """Raised when database connection or initialization fails.

    Examples:
    - Invalid database URL format
    - Database file not accessible
    - Session requested before initialization
    """

    pass


class RecordNotFoundError(PersistenceError):
    """Raised when an update targets a configuration or owner that does not exist.

    Plain lookups return None instead of raising this.
    """

    pass


class DataIntegrityError(PersistenceError):
    """Raised when a constraint violation occurs (unknown owner, duplicate key)."""

    pass
