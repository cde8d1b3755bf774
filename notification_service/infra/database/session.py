"""Async database engine and session management.

The engine is created at import time from ``DatabaseSettings``; creating an
async engine does not open a connection, so importing this module is cheap
even when the database is down.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from notification_service.core.settings import get_app_settings, get_db_settings

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)

db_settings = get_db_settings()
app_settings = get_app_settings()

engine = create_async_engine(
    db_settings.dsn,
    **{**db_settings.engine_kwargs(), "echo": db_settings.echo or app_settings.debug},
)

# expire_on_commit=False: processors read attributes after committing the
# read transaction and must not trigger a lazy refresh.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Get an async database session that is closed on exit.

    Example:
        async with get_async_session() as session:
            outcome = await processor.process_delivery(session, tenant_id, delivery_id)
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_database() -> None:
    """Verify connectivity at worker startup.

    Raises:
        ConnectionError: If the database cannot be reached.
    """
    safe_url = make_url(db_settings.dsn).render_as_string(hide_password=True)
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.exception(
            "Database connection failed",
            extra={"url": safe_url, "error": str(e)},
        )
        raise ConnectionError(f"Unable to connect to database at {safe_url}") from e

    logger.info(
        "Database connection established",
        extra={"url": safe_url, "driver": engine.dialect.driver},
    )


async def close_database() -> None:
    """Dispose of the engine's connection pool."""
    await engine.dispose()
    logger.info("Database connections closed")


__all__ = [
    "AsyncSessionLocal",
    "close_database",
    "engine",
    "get_async_session",
    "init_database",
]
