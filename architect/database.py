"""
Database configuration using SQLAlchemy with async support.
PostgreSQL (asyncpg) in production, SQLite (aiosqlite) for local runs and tests.
"""

from typing import Any, AsyncGenerator

from sqlalchemy import JSON, event
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from architect.config import settings
from architect.exceptions import PersistenceError
from architect.logging_config import get_logger

logger = get_logger(__name__)


# JSON everywhere, JSONB on PostgreSQL
JSONType = JSON().with_variant(postgresql.JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


def _engine_options() -> dict[str, Any]:
    if settings.is_sqlite:
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": True,
    }


engine = create_async_engine(
    settings.database_url,
    echo=False,
    **_engine_options(),
)


def enable_sqlite_foreign_keys(sync_engine) -> None:
    """Turn on foreign key enforcement for every new SQLite connection."""

    @event.listens_for(sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


if settings.is_sqlite:
    enable_sqlite_foreign_keys(engine.sync_engine)


async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency to get database session.
    Use with FastAPI Depends(). Services commit their own progress;
    anything left pending is committed here.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(
                "database_session_error",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise
        finally:
            await session.close()


async def commit_or_raise(db: AsyncSession, operation: str) -> None:
    """Commit the session; on database failure roll back and raise PersistenceError."""
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("commit_failed", operation=operation, error=str(e))
        raise PersistenceError(operation, e) from e


async def insert_if_absent(
    db: AsyncSession,
    model: type[Base],
    values: dict[str, Any],
    conflict_columns: list[str],
    returning: Any,
) -> Any | None:
    """
    INSERT ... ON CONFLICT DO NOTHING RETURNING <column>.

    Returns the returned column value for a new row, or None if a row with the
    same conflict_columns already exists. A single statement, so two racing
    callers can't both win.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        insert = postgresql.insert
    elif dialect == "sqlite":
        insert = sqlite.insert
    else:
        raise NotImplementedError(f"insert_if_absent does not support {dialect}")

    stmt = (
        insert(model)
        .values(**values)
        .on_conflict_do_nothing(index_elements=conflict_columns)
        .returning(returning)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def init_db() -> None:
    """Initialize database - create all tables."""
    import architect.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_initialized", dialect=engine.dialect.name)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
    logger.info("database_connections_closed")
