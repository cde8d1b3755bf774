"""Repositories for notification content and deliveries."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, update

from notification_service.core.database import BaseRepository, SearchResult
from notification_service.features.notifications.models import (
    NON_TERMINAL_STATES,
    DeliveryState,
    NotificationContent,
    NotificationDelivery,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute


def tenant_filter(column: InstrumentedAttribute[Any], tenant_id: str | None) -> ColumnElement[bool]:
    """Scope a query to one tenant; ``None`` matches only tenant-less rows."""
    if tenant_id is None:
        return column.is_(None)
    return column == tenant_id


class NotificationContentRepository(BaseRepository[NotificationContent]):
    """Repository for immutable notification content."""

    def __init__(self) -> None:
        super().__init__(NotificationContent)

    async def get_for_tenant(
        self,
        session: AsyncSession,
        content_id: UUID,
        tenant_id: str | None,
    ) -> NotificationContent | None:
        stmt = select(NotificationContent).where(
            NotificationContent.id == content_id,
            tenant_filter(NotificationContent.tenant_id, tenant_id),
        )
        result = await session.execute(stmt)
        content = result.scalar_one_or_none()

        self._lazy.debug(
            lambda: f"db.get_content({content_id}, tenant={tenant_id!r}) -> {'found' if content else 'not found'}"
        )
        return content


class NotificationDeliveryRepository(BaseRepository[NotificationDelivery]):
    """Repository for per-recipient delivery records.

    Terminal transitions go through ``complete``, a single guarded UPDATE
    that only matches while the row is still non-terminal. Whoever's UPDATE
    matches first wins; every later attempt sees ``False`` and must drop
    its result.
    """

    def __init__(self) -> None:
        super().__init__(NotificationDelivery)

    async def get_for_tenant(
        self,
        session: AsyncSession,
        delivery_id: UUID,
        tenant_id: str | None,
    ) -> NotificationDelivery | None:
        """Point read scoped to the tenant; other tenants' rows are invisible.

        Always reflects the stored row, even when the session already holds
        the object from before a guarded UPDATE.
        """
        stmt = (
            select(NotificationDelivery)
            .where(
                NotificationDelivery.id == delivery_id,
                tenant_filter(NotificationDelivery.tenant_id, tenant_id),
            )
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        delivery = result.scalar_one_or_none()

        self._lazy.debug(
            lambda: f"db.get_delivery({delivery_id}, tenant={tenant_id!r}) -> {delivery.state if delivery else 'not found'}"
        )
        return delivery

    async def mark_sending(self, session: AsyncSession, delivery_id: UUID) -> bool:
        """Move a pending delivery to ``sending``.

        Returns:
            False when the row is no longer ``pending`` (already sending,
            or finished by another worker).
        """
        stmt = (
            update(NotificationDelivery)
            .where(
                NotificationDelivery.id == delivery_id,
                NotificationDelivery.state == DeliveryState.PENDING.value,
            )
            .values(state=DeliveryState.SENDING.value, updated_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount == 1

    async def release_sending(self, session: AsyncSession, delivery_id: UUID) -> bool:
        """Put a ``sending`` delivery back to ``pending`` after an aborted attempt."""
        stmt = (
            update(NotificationDelivery)
            .where(
                NotificationDelivery.id == delivery_id,
                NotificationDelivery.state == DeliveryState.SENDING.value,
            )
            .values(state=DeliveryState.PENDING.value, updated_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount == 1

    async def complete(
        self,
        session: AsyncSession,
        delivery_id: UUID,
        *,
        state: DeliveryState,
        failure_reason: str | None = None,
        error_message: str | None = None,
        completion_time: datetime | None = None,
    ) -> bool:
        """Compare-and-set the terminal state.

        Args:
            session: Database session (caller commits)
            delivery_id: Delivery to finish
            state: ``succeeded`` or ``failed``
            failure_reason: Required for ``failed``, forbidden for ``succeeded``
            error_message: Optional diagnostic text for ``failed``
            completion_time: Defaults to now (UTC)

        Returns:
            True if this call performed the transition, False if the row was
            already terminal.
        """
        if not state.is_terminal:
            raise ValueError(f"complete() needs a terminal state, got {state}")
        succeeded = state is DeliveryState.SUCCEEDED
        if succeeded and failure_reason is not None:
            raise ValueError("a succeeded delivery cannot carry a failure reason")
        if not succeeded and not failure_reason:
            raise ValueError("a failed delivery requires a failure reason")

        now = completion_time or datetime.now(UTC)
        stmt = (
            update(NotificationDelivery)
            .where(
                NotificationDelivery.id == delivery_id,
                NotificationDelivery.state.in_([s.value for s in NON_TERMINAL_STATES]),
            )
            .values(
                state=state.value,
                success=succeeded,
                completion_time=now,
                failure_reason=None if succeeded else failure_reason,
                error_message=None if succeeded else error_message,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        applied = result.rowcount == 1

        self._lazy.debug(
            lambda: f"db.complete_delivery({delivery_id}, {state}) -> {'applied' if applied else 'already terminal'}"
        )
        return applied

    async def list_for_content(
        self,
        session: AsyncSession,
        content_id: UUID,
        tenant_id: str | None,
        *,
        state: DeliveryState | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> SearchResult[NotificationDelivery]:
        """Page through the deliveries of one notification, in creation order."""
        stmt = select(NotificationDelivery).where(
            NotificationDelivery.content_id == content_id,
            tenant_filter(NotificationDelivery.tenant_id, tenant_id),
        )
        if state is not None:
            stmt = stmt.where(NotificationDelivery.state == state.value)
        stmt = stmt.order_by(NotificationDelivery.id).execution_options(populate_existing=True)
        return await self.search(session, stmt, limit=limit, offset=offset)

    async def list_unfinished(
        self,
        session: AsyncSession,
        content_id: UUID,
        tenant_id: str | None,
        delivery_ids: Sequence[UUID] | None = None,
    ) -> list[NotificationDelivery]:
        """Non-terminal deliveries of one notification, optionally limited to ``delivery_ids``."""
        stmt = select(NotificationDelivery).where(
            NotificationDelivery.content_id == content_id,
            tenant_filter(NotificationDelivery.tenant_id, tenant_id),
            NotificationDelivery.state.in_([s.value for s in NON_TERMINAL_STATES]),
        )
        if delivery_ids is not None:
            stmt = stmt.where(NotificationDelivery.id.in_(delivery_ids))
        stmt = stmt.order_by(NotificationDelivery.id).execution_options(populate_existing=True)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def count_by_state(
        self,
        session: AsyncSession,
        content_id: UUID,
        tenant_id: str | None,
    ) -> dict[str, int]:
        """Count one notification's deliveries per state."""
        stmt = (
            select(NotificationDelivery.state, func.count())
            .where(
                NotificationDelivery.content_id == content_id,
                tenant_filter(NotificationDelivery.tenant_id, tenant_id),
            )
            .group_by(NotificationDelivery.state)
        )
        result = await session.execute(stmt)
        return {state: count for state, count in result.all()}


# Singleton instances
_content_repository: NotificationContentRepository | None = None
_delivery_repository: NotificationDeliveryRepository | None = None


def get_notification_content_repository() -> NotificationContentRepository:
    """Get NotificationContentRepository singleton instance."""
    global _content_repository
    if _content_repository is None:
        _content_repository = NotificationContentRepository()
    return _content_repository


def get_notification_delivery_repository() -> NotificationDeliveryRepository:
    """Get NotificationDeliveryRepository singleton instance."""
    global _delivery_repository
    if _delivery_repository is None:
        _delivery_repository = NotificationDeliveryRepository()
    return _delivery_repository


__all__ = [
    "NotificationContentRepository",
    "NotificationDeliveryRepository",
    "get_notification_content_repository",
    "get_notification_delivery_repository",
    "tenant_filter",
]
