"""Store interfaces and the SQLAlchemy reference adapter."""

from .database import Database
from .exceptions import (
    DatabaseConnectionError,
    DataIntegrityError,
    PersistenceError,
    RecordNotFoundError,
)
from .interfaces import ConfigurationRegistry, RecordSource, RetentionStore, StatsStore
from .repositories import AlertConfigurationRepository, OwnerRepository, TenderRepository
from .store import SqlAlchemyAlertStore

__all__ = [
    "AlertConfigurationRepository",
    "ConfigurationRegistry",
    "Database",
    "DatabaseConnectionError",
    "DataIntegrityError",
    "OwnerRepository",
    "PersistenceError",
    "RecordNotFoundError",
    "RecordSource",
    "RetentionStore",
    "SqlAlchemyAlertStore",
    "StatsStore",
    "TenderRepository",
]
