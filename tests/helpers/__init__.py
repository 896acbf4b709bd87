"""Test helper utilities for tender alert tests."""

from .fakes import (
    NOW,
    FakeTransport,
    InMemoryAlertStore,
    make_config,
    make_owner,
    make_record,
    no_sleep,
)

__all__ = [
    "NOW",
    "FakeTransport",
    "InMemoryAlertStore",
    "make_config",
    "make_owner",
    "make_record",
    "no_sleep",
]
