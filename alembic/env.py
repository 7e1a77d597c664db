"""Alembic environment. The database URL always comes from architect settings."""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from architect.config import settings
from architect.database import Base
import architect.models  # noqa: F401  (registers every table on Base.metadata)

if context.config.config_file_name is not None:
    fileConfig(context.config.config_file_name)


def _options(url: str) -> dict:
    return {
        "target_metadata": Base.metadata,
        "compare_type": True,
        # SQLite has no ALTER CONSTRAINT; batch mode rebuilds the table
        "render_as_batch": url.startswith("sqlite"),
    }


def migrate_offline(url: str) -> None:
    """Emit SQL to stdout instead of executing it (``alembic upgrade --sql``)."""
    context.configure(url=url, literal_binds=True, dialect_opts={"paramstyle": "named"}, **_options(url))
    with context.begin_transaction():
        context.run_migrations()


def _migrate_on(connection: Connection, url: str) -> None:
    context.configure(connection=connection, **_options(url))
    with context.begin_transaction():
        context.run_migrations()


async def migrate_online(url: str) -> None:
    engine = create_async_engine(url, poolclass=pool.NullPool)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(_migrate_on, url)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    migrate_offline(settings.database_url)
else:
    asyncio.run(migrate_online(settings.database_url))
