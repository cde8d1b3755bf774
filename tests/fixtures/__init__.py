"""Test fixtures for pytest.

This module re-exports commonly used test fakes for easier importing.
"""

from .notifications import (
    CONFIRMED_USER,
    NO_PHONE_USER,
    UNCONFIRMED_USER,
    UNKNOWN_USER,
    FailingJobQueue,
    InMemoryDirectory,
    InMemoryJobQueue,
    RecordingSender,
    default_users,
    load_deliveries,
    load_delivery,
)

__all__ = [
    "CONFIRMED_USER",
    "NO_PHONE_USER",
    "UNCONFIRMED_USER",
    "UNKNOWN_USER",
    "FailingJobQueue",
    "InMemoryDirectory",
    "InMemoryJobQueue",
    "RecordingSender",
    "default_users",
    "load_deliveries",
    "load_delivery",
]
