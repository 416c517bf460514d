"""Async SQLAlchemy engine and session for the event journal.

The risk engine itself is in-memory; the database only receives the
append-only journal of committed engine events.
"""

from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from config.settings import settings

engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def ping_database() -> None:
    """Fail fast at startup if the journal database is unreachable."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def get_journal_session() -> AsyncGenerator[AsyncSession | None, None]:
    """FastAPI dependency: the journal session, or None when journaling is off."""
    if not settings.JOURNAL_ENABLED:
        yield None
        return
    async with async_session_factory() as session:
        yield session
