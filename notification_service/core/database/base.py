"""Declarative base and composable column mixins.

Every table in the service derives from ``Base`` so constraint names stay
predictable across SQLite and PostgreSQL migrations. Models pick their
capabilities by mixing in:

- ``UUIDv7PKMixin``: time-sortable UUID primary key
- ``TimestampMixin``: ``created_at`` / ``updated_at``
- ``TenantMixin``: nullable, indexed ``tenant_id``

Example:
    class NotificationContent(Base, UUIDv7PKMixin, TimestampMixin, TenantMixin):
        __tablename__ = "notification_contents"
        text: Mapped[str] = mapped_column(Text)
"""

from __future__ import annotations

import os
import threading
import time
import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, MetaData, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Declarative base carrying the shared naming convention."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


_uuid7_lock = threading.Lock()
_last_timestamp_ms = 0
_sequence = 0


def generate_uuid7() -> uuid.UUID:
    """Generate a UUID v7 (48-bit Unix millisecond prefix, 12-bit sequence, random tail).

    Ids generated by this process are strictly increasing: within one
    millisecond the sequence field counts up, so ``ORDER BY id`` returns rows
    in creation order.
    """
    global _last_timestamp_ms, _sequence

    with _uuid7_lock:
        timestamp_ms = time.time_ns() // 1_000_000
        if timestamp_ms <= _last_timestamp_ms:
            timestamp_ms = _last_timestamp_ms
            _sequence += 1
            if _sequence > 0xFFF:
                # Sequence exhausted: borrow the next millisecond
                timestamp_ms += 1
                _sequence = 0
        else:
            _sequence = 0
        _last_timestamp_ms = timestamp_ms
        sequence = _sequence

    random_bytes = os.urandom(8)

    uuid_bytes = bytearray(16)
    uuid_bytes[0:6] = timestamp_ms.to_bytes(6, byteorder="big")
    uuid_bytes[6] = 0x70 | (sequence >> 8)  # version 7
    uuid_bytes[7] = sequence & 0xFF
    uuid_bytes[8] = (random_bytes[0] & 0x3F) | 0x80  # RFC 9562 variant
    uuid_bytes[9:16] = random_bytes[1:8]

    return uuid.UUID(bytes=bytes(uuid_bytes))


# ============================================================================
# Mixins
# ============================================================================


class UUIDv7PKMixin:
    """UUID v7 primary key, generated client-side so ids exist before flush."""

    __allow_unmapped__ = True

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid7,
        comment="UUID v7 primary key (time-sortable)",
    )


class TimestampMixin:
    """Timezone-aware creation and modification timestamps.

    Python-side defaults keep SQLite tests deterministic; ``server_default``
    covers rows written outside the ORM.
    """

    __allow_unmapped__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        server_default=func.now(),
        nullable=False,
        comment="Timestamp of record creation",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        server_default=func.now(),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
        comment="Timestamp of last update",
    )


class TenantMixin:
    """Tenant scoping column.

    ``tenant_id`` is an opaque identifier with no foreign key. ``None`` means
    single-tenant mode; repositories compare with ``IS NULL`` in that case so
    rows written without a tenant are never visible to a tenant-scoped read.
    """

    __allow_unmapped__ = True

    tenant_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        index=True,
        comment="Tenant ID for multi-tenant isolation",
    )


__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "TenantMixin",
    "TimestampMixin",
    "UUIDv7PKMixin",
    "generate_uuid7",
]
