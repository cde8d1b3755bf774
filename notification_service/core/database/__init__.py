"""Core database package: declarative base, mixins and the thin repository layer.

Base and mixins:
    - Base: declarative base with a shared constraint naming convention
    - UUIDv7PKMixin: time-sortable UUID primary key
    - TimestampMixin: created_at, updated_at tracking
    - TenantMixin: nullable, indexed tenant_id

Repository:
    - BaseRepository[T]: generic reads/writes with explicit session passing
    - SearchResult[T]: paginated result container
"""

from notification_service.core.database.base import (
    NAMING_CONVENTION,
    Base,
    TenantMixin,
    TimestampMixin,
    UUIDv7PKMixin,
    generate_uuid7,
)
from notification_service.core.database.repository import BaseRepository, SearchResult

__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "BaseRepository",
    "SearchResult",
    "TenantMixin",
    "TimestampMixin",
    "UUIDv7PKMixin",
    "generate_uuid7",
]
