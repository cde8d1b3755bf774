"""Minimal generic repository for SQLAlchemy models.

Provides basic reads and writes with explicit session passing. Repositories
never commit: transaction boundaries belong to the service that owns the
unit of work. For anything not covered here, use the session directly.

Example:
    class DeliveryRepository(BaseRepository[NotificationDelivery]):
        async def list_for_content(self, session, content_id):
            stmt = select(NotificationDelivery).where(
                NotificationDelivery.content_id == content_id
            )
            return (await session.execute(stmt)).scalars().all()
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlalchemy import Select, func, select

from notification_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class SearchResult(Generic[T]):
    """One page of results plus the total across all pages."""

    items: Sequence[T]
    total: int
    limit: int
    offset: int

    @property
    def has_next(self) -> bool:
        """Whether there are more pages after this one."""
        return self.offset + len(self.items) < self.total


class BaseRepository(Generic[T]):
    """Thin CRUD layer over one mapped class.

    Provides:
        - search(session, statement, limit, offset) -> SearchResult[T]
        - count(session, statement) -> int
        - create(session, instance) -> T
        - create_many(session, instances) -> Sequence[T]
    """

    __slots__ = ("model", "_lazy")

    def __init__(self, model: type[T]) -> None:
        self.model = model
        self._lazy = get_lazy_logger(f"repository.{model.__name__}")

    async def search(
        self,
        session: AsyncSession,
        statement: Select[tuple[T]],
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> SearchResult[T]:
        """Execute a pre-filtered statement with pagination and a total count.

        Args:
            session: Database session
            statement: Select statement with filters and ordering applied
            limit: Page size
            offset: Results to skip
        """
        total = await self.count(session, statement)

        result = await session.execute(statement.limit(limit).offset(offset))
        items = result.scalars().all()

        self._lazy.debug(
            lambda: f"db.search: {self.model.__name__}(limit={limit}, offset={offset}) -> {len(items)}/{total} items"
        )
        return SearchResult(items=items, total=total, limit=limit, offset=offset)

    async def count(self, session: AsyncSession, statement: Select[Any]) -> int:
        """Count the rows a statement would return."""
        count_stmt = select(func.count()).select_from(statement.order_by(None).subquery())
        return (await session.execute(count_stmt)).scalar_one()

    async def create(self, session: AsyncSession, instance: T) -> T:
        """Add and flush a new entity so generated values are populated."""
        session.add(instance)
        await session.flush()

        self._lazy.debug(
            lambda: f"db.create: {self.model.__name__}(id={getattr(instance, 'id', None)})"
        )
        return instance

    async def create_many(self, session: AsyncSession, instances: Iterable[T]) -> Sequence[T]:
        """Add and flush several entities in one round of INSERTs.

        Primary keys and timestamps are generated client-side, so the
        instances are usable without a refresh.
        """
        instances_list = list(instances)
        if not instances_list:
            return instances_list

        session.add_all(instances_list)
        await session.flush()

        self._lazy.debug(
            lambda: f"db.create_many: {self.model.__name__} -> {len(instances_list)} created"
        )
        return instances_list


__all__ = [
    "BaseRepository",
    "SearchResult",
]
