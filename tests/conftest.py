"""Pytest configuration and shared fixtures.

Organization:
    - Database Fixtures: SQLAlchemy engine and session (in-memory SQLite),
      plus a file-backed database for tests that need two connections
    - Notification Fixtures: fake directory, sender and job queue wired into
      a coordinator and a processor

When adding new features:
    1. Add fixtures to the appropriate section below
    2. Use @pytest.fixture with clear docstrings
    3. Make fixtures composable (fixtures can depend on other fixtures)
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Ensure tests run without external infrastructure
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RABBIT_ENABLED", "false")
os.environ.setdefault("NOTIFY_SMS_BACKEND", "log")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LOG_JSON_LOGS", "false")

from notification_service.core.database.base import Base
from notification_service.core.settings import NotificationSettings
from notification_service.features.notifications.channels import ChannelRegistry
from notification_service.features.notifications.processor import DeliveryProcessor
from notification_service.features.notifications.service import NotificationService
from tests.fixtures.notifications import (
    InMemoryDirectory,
    InMemoryJobQueue,
    RecordingSender,
    default_users,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """Create async SQLAlchemy engine with in-memory SQLite and all tables.

    Yields:
        Async SQLAlchemy engine connected to in-memory SQLite.
    """
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Create async database session.

    ``expire_on_commit=False`` matches the application session factory.

    Example:
        async def test_create(db_session):
            content_id = await service.create_notification(db_session, "t-1", ["u-1"])
    """
    session_maker = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async with session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()


@pytest.fixture
def session_factory(db_session: AsyncSession):
    """Context-manager factory handing out the test session (for event handlers)."""

    @asynccontextmanager
    async def factory():
        yield db_session

    return factory


@pytest.fixture
async def file_db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    """File-backed SQLite engine so independent sessions get independent connections.

    Used by concurrency tests, where two processors must not share a
    connection the way they would with ``:memory:``.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'notifications.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


# ============================================================================
# Notification Fixtures
# ============================================================================


@pytest.fixture
def notification_settings() -> NotificationSettings:
    """Settings with short timeouts and only the SMS channel."""
    return NotificationSettings(
        default_channel="sms",
        enabled_channels=["sms"],
        sms_backend="log",
        resolve_timeout_seconds=0.2,
        send_timeout_seconds=0.2,
    )


@pytest.fixture
def directory() -> InMemoryDirectory:
    """Directory knowing a confirmed, an unconfirmed and a phone-less user."""
    return InMemoryDirectory(default_users())


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def job_queue() -> InMemoryJobQueue:
    return InMemoryJobQueue()


@pytest.fixture
def channel_registry(directory: InMemoryDirectory, sender: RecordingSender) -> ChannelRegistry:
    registry = ChannelRegistry()
    registry.register("sms", directory, sender)
    return registry


@pytest.fixture
def notification_service(
    job_queue: InMemoryJobQueue,
    notification_settings: NotificationSettings,
) -> NotificationService:
    """Coordinator that enqueues into an in-memory list."""
    return NotificationService(queue=job_queue, settings=notification_settings)


@pytest.fixture
def delivery_processor(
    channel_registry: ChannelRegistry,
    notification_settings: NotificationSettings,
) -> DeliveryProcessor:
    """Processor bound to the fake directory and the recording sender."""
    return DeliveryProcessor(registry=channel_registry, settings=notification_settings)
