"""SQLAlchemy models for notification content and per-recipient deliveries."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from notification_service.core.database import (
    Base,
    TenantMixin,
    TimestampMixin,
    UUIDv7PKMixin,
)


class DeliveryState(StrEnum):
    """Lifecycle of one delivery.

    ``pending -> [sending] -> succeeded | failed``. ``sending`` is only
    written when ``persist_sending_state`` is enabled and is reprocessed
    exactly like ``pending``.
    """

    PENDING = "pending"
    SENDING = "sending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({DeliveryState.SUCCEEDED, DeliveryState.FAILED})
NON_TERMINAL_STATES = frozenset({DeliveryState.PENDING, DeliveryState.SENDING})


class NotificationContent(Base, UUIDv7PKMixin, TimestampMixin, TenantMixin):
    """Immutable payload shared by every delivery fanned out from one request.

    Written once by the coordinator and never updated. Deliveries point at
    it by id only; there is no relationship back to them.
    """

    __tablename__ = "notification_contents"

    channel: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Channel the content was created for (sms, email, push)",
    )
    text: Mapped[str] = mapped_column(
        Text(),
        nullable=False,
        default="",
        comment="Free-text body",
    )
    properties: Mapped[dict[str, Any]] = mapped_column(
        JSONB().with_variant(JSON(), "sqlite"),
        nullable=False,
        default=dict,
        comment="Channel-agnostic structured properties (string keys, JSON values)",
    )

    def __repr__(self) -> str:
        return f"<NotificationContent(id={self.id}, tenant_id={self.tenant_id!r}, channel={self.channel!r})>"


class NotificationDelivery(Base, UUIDv7PKMixin, TimestampMixin, TenantMixin):
    """One send attempt record per (content, recipient entry).

    Created ``pending`` by the coordinator and moved to a terminal state at
    most once by the processor, through a compare-and-set on ``state``.

    Consistency rules:
        - ``completion_time`` is set iff the state is terminal
        - ``failure_reason`` is set iff the state is ``failed``
        - ``success`` is true iff the state is ``succeeded``

    Indexes:
        - content_id for listing the deliveries of one notification
        - (tenant_id, state) for outcome counts
    """

    __tablename__ = "notification_deliveries"

    content_id: Mapped[UUID] = mapped_column(
        ForeignKey("notification_contents.id"),
        nullable=False,
        index=True,
        comment="Content this delivery sends (lookup only)",
    )
    recipient_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Directory identifier of the recipient",
    )
    channel: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Channel used to resolve and send: sms, email, push",
    )

    # Lifecycle
    state: Mapped[str] = mapped_column(
        String(20),
        default=DeliveryState.PENDING.value,
        nullable=False,
        comment="Delivery state: pending, sending, succeeded, failed",
    )
    success: Mapped[bool] = mapped_column(
        Boolean(),
        default=False,
        nullable=False,
        comment="True iff the delivery succeeded",
    )
    completion_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the delivery reached a terminal state",
    )

    # Failure classification
    failure_reason: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        comment="Classified failure reason (ReceiverInfoNotFound or channel-reported)",
    )
    error_message: Mapped[str | None] = mapped_column(
        Text(),
        nullable=True,
        comment="Diagnostic message for failed deliveries (truncated)",
    )

    __table_args__ = (
        Index("ix_notification_deliveries_tenant_state", "tenant_id", "state"),
        CheckConstraint(
            "state IN ('pending', 'sending', 'succeeded', 'failed')",
            name="state_valid",
        ),
    )

    @property
    def delivery_state(self) -> DeliveryState:
        return DeliveryState(self.state)

    @property
    def is_terminal(self) -> bool:
        return self.delivery_state.is_terminal

    def __repr__(self) -> str:
        return (
            f"<NotificationDelivery(id={self.id}, recipient_id={self.recipient_id!r}, "
            f"channel={self.channel!r}, state={self.state!r})>"
        )


__all__ = [
    "NON_TERMINAL_STATES",
    "TERMINAL_STATES",
    "DeliveryState",
    "NotificationContent",
    "NotificationDelivery",
]
