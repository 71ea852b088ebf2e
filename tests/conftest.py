"""Pytest fixtures for PatternLens tests."""

from collections.abc import AsyncGenerator, Callable, Sequence
from datetime import datetime

import pytest
import pytest_asyncio
import structlog
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from factories import NOW, FakeNarrativeGenerator
from patternlens.config.settings import Settings
from patternlens.db.models.base import Base


# =============================================================================
# Structlog Configuration Fixture
# =============================================================================


@pytest.fixture(scope="function", autouse=True)
def reset_structlog_after_test():
    """Reset structlog configuration after each test.

    This ensures tests that modify structlog global state
    don't affect other tests.
    """
    yield
    structlog.reset_defaults()
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Settings for tests: in-memory database, no narrative provider."""
    return Settings(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        ENVIRONMENT="test",
        DEBUG=True,
        log_level="DEBUG",
        anthropic_api_key=None,
    )


@pytest.fixture
def fake_generator() -> FakeNarrativeGenerator:
    return FakeNarrativeGenerator()


# =============================================================================
# Database fixtures
# =============================================================================


@pytest_asyncio.fixture
async def test_engine():
    """Create a test database engine.

    In-memory SQLite on a single shared connection, so sessions opened by
    the components under test see the same data.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def seed(session_factory) -> Callable:
    """Insert rows in their own committed transaction."""

    async def _seed(*rows: object) -> Sequence[object]:
        async with session_factory() as session:
            session.add_all(rows)
            await session.commit()
        return rows

    return _seed


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: NOW


# =============================================================================
# API fixtures
# =============================================================================


@pytest.fixture
def test_app(
    test_settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    fake_generator: FakeNarrativeGenerator,
) -> FastAPI:
    """Create a FastAPI test application bound to the test database."""
    from patternlens.api.app import create_app
    from patternlens.api.dependencies import get_db, get_insight_cache, get_sessions
    from patternlens.insights.cache import InsightCache

    app = create_app(settings=test_settings)

    async def _get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_sessions] = lambda: session_factory
    app.dependency_overrides[get_insight_cache] = lambda: InsightCache(
        session_factory, generator=fake_generator, config=test_settings.insights
    )
    return app


@pytest_asyncio.fixture
async def test_client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for API testing.

    Provides an httpx.AsyncClient configured to call the test application
    directly without network overhead.
    """
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as client:
        yield client
