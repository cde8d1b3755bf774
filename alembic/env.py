"""Alembic environment for the notification tables.

The URL comes from ``DatabaseSettings`` (``DATABASE_URL``), not from
alembic.ini, so migrations always target the database the workers use.
SQLite runs in batch mode because it cannot ALTER most constraints in place.
A caller that already owns an engine (tests, bootstrap scripts) can hand it
over as ``config.attributes["engine"]``.
"""

from __future__ import annotations

import asyncio
from logging.config import fileConfig
from typing import TYPE_CHECKING, Any

from sqlalchemy import pool
from sqlalchemy.ext.asyncio import AsyncEngine, async_engine_from_config

from alembic import context
from notification_service.core.database.base import Base
from notification_service.core.settings import get_db_settings
from notification_service.features.notifications import models  # noqa: F401

if TYPE_CHECKING:
    from alembic.operations.ops import MigrationScript
    from alembic.runtime.migration import MigrationContext
    from sqlalchemy.engine import Connection

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

config.set_main_option("sqlalchemy.url", get_db_settings().dsn)

target_metadata = Base.metadata
managed_tables = frozenset(target_metadata.tables)


def include_object(
    obj: Any,
    name: str | None,
    type_: str,
    reflected: bool,
    compare_to: Any,
) -> bool:
    """Leave tables this service does not own out of autogenerate."""
    if type_ == "table" and reflected and compare_to is None:
        return name in managed_tables
    return True


def skip_empty_revisions(
    migration_context: MigrationContext,
    revision: Any,
    directives: list[MigrationScript],
) -> None:
    """Do not write an autogenerated revision that would change nothing."""
    if not getattr(config.cmd_opts, "autogenerate", False) or not directives:
        return
    upgrade_ops = directives[0].upgrade_ops
    if upgrade_ops is not None and upgrade_ops.is_empty():
        directives.clear()


def _configure_options() -> dict[str, Any]:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "include_object": include_object,
    }


def run_migrations_offline() -> None:
    """Emit the migration SQL without connecting."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(),
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_on_connection(connection: Connection) -> None:
    context.configure(
        connection=connection,
        render_as_batch=connection.dialect.name == "sqlite",
        process_revision_directives=skip_empty_revisions,
        **_configure_options(),
    )
    with context.begin_transaction():
        context.run_migrations()


async def _run_with_engine(engine: AsyncEngine) -> None:
    async with engine.connect() as connection:
        await connection.run_sync(_run_on_connection)


async def run_migrations_online() -> None:
    """Apply migrations through an async connection."""
    supplied = config.attributes.get("engine")
    if supplied is not None:
        await _run_with_engine(supplied)
        return

    engine = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    try:
        await _run_with_engine(engine)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
