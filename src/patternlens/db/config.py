"""Database configuration and session management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool

from patternlens.config.settings import get_settings
from patternlens.db.models.base import Base

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _engine_options(url: str) -> dict[str, Any]:
    settings = get_settings()
    options: dict[str, Any] = {"echo": settings.DEBUG}
    if url.startswith("sqlite"):
        # In-memory SQLite lives in one connection
        if ":memory:" in url:
            options["poolclass"] = StaticPool
            options["connect_args"] = {"check_same_thread": False}
        else:
            options["poolclass"] = NullPool
    elif settings.ENVIRONMENT == "test":
        options["poolclass"] = NullPool
    else:
        options["pool_size"] = settings.DATABASE_POOL_SIZE
        options["max_overflow"] = settings.DATABASE_MAX_OVERFLOW
    return options


def get_engine() -> AsyncEngine:
    """Get the process-wide async engine, creating it on first use."""
    global _engine
    if _engine is None:
        url = get_settings().DATABASE_URL
        _engine = create_async_engine(url, **_engine_options(url))
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory bound to the process-wide engine."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def init_db(create_tables: bool = False) -> None:
    """Initialize the database connection pool.

    Called during application startup to ensure the connection pool
    is ready before accepting requests.

    Args:
        create_tables: Create missing tables from the ORM metadata. Only
            meant for SQLite development databases; production schemas
            are managed by Alembic.
    """
    async with get_engine().begin() as conn:
        await conn.execute(text("SELECT 1"))
        if create_tables:
            await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections gracefully.

    Called during application shutdown to release all connections
    in the pool.
    """
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Context manager for obtaining a database session.

    Use this when you need a session outside of FastAPI dependency injection,
    such as in the scheduler.

    Usage:
        async with get_async_session() as session:
            result = await session.execute(query)

    Yields:
        AsyncSession: A database session that will be automatically closed
    """
    async with get_session_factory()() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for FastAPI to inject database sessions.

    Usage:
        @router.get("/patterns")
        async def list_patterns(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with get_session_factory()() as session:
        try:
            yield session
        finally:
            await session.close()
