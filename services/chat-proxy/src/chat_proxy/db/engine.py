"""Async SQLAlchemy engine and session factory for the chat proxy.

Uses aiosqlite as the driver (sqlite+aiosqlite:// connection strings).
expire_on_commit=False prevents lazy-load errors after a commit closes the session.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from chat_proxy.db.models import Base

# Module-level engine and session factory, initialized once at app startup.
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def initialize_engine(database_url: str) -> None:
    """Create the async engine and session factory from a connection URL.

    Called once during FastAPI lifespan startup so the URL comes from config,
    not from a module-level import that would run before settings are loaded.
    """
    global _engine, _session_factory

    _engine = create_async_engine(database_url, echo=False)
    _session_factory = async_sessionmaker(
        bind=_engine,
        expire_on_commit=False,
        class_=AsyncSession,
    )


async def create_tables() -> None:
    """Create any missing tables. Existing tables are left untouched."""
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call initialize_engine() first.")
    async with _engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if _session_factory is None:
        raise RuntimeError("Engine not initialized. Call initialize_engine() first.")
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding one session per request, rolled back on error."""
    async with get_session_factory()() as session:
        try:
            yield session
        except BaseException:
            await session.rollback()
            raise


async def dispose_engine() -> None:
    """Close all connections. Called during app shutdown."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
