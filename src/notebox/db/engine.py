"""Async SQLAlchemy engine, session factory, and dialect helpers.

One engine with connection pooling; every request gets its own AsyncSession
through ``get_db`` and the session is closed on every exit path.
"""

from sqlalchemy import Table
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from notebox.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
)

# Session factory: each request gets its own session.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:
    """FastAPI dependency — yields a session per request, auto-closes."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


def upsert_insert(db: AsyncSession, table: Table):
    """INSERT construct with ON CONFLICT support for the session's backend.

    PostgreSQL and SQLite both implement ``on_conflict_do_nothing`` /
    ``on_conflict_do_update``; the construct has to come from the matching
    dialect module.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"No upsert support for dialect {dialect!r}")
