"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from patternlens.api.errors import register_exception_handlers
from patternlens.api.middleware import RequestLoggingMiddleware
from patternlens.api.routers import health_router, v1_router
from patternlens.config.settings import Settings, get_settings
from patternlens.core.logging import get_logger, setup_logging

logger = get_logger("patternlens.api")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    This is the application factory that assembles all components:
    - Middleware
    - Routers
    - Exception handlers
    - Lifespan management

    Args:
        settings: Optional settings override (useful for testing)

    Returns:
        Configured FastAPI application

    Example:
        # Production
        app = create_app()

        # Run with uvicorn
        uvicorn patternlens.api.app:create_app --factory
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="PatternLens API",
        description="Pattern detection and insight engine for anomalous sighting reports",
        version="0.1.0",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=_lifespan,
    )

    # Store settings on app state for access in dependencies
    app.state.settings = settings

    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)
    _configure_routers(app)

    return app


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Opens the database connection pool on startup and releases it on
    shutdown.

    Args:
        app: FastAPI application

    Yields:
        None (context for application lifetime)
    """
    from patternlens.db.config import close_db, init_db

    setup_logging()
    logger.info("Starting PatternLens API...")

    try:
        await init_db()
        logger.info("Database connection pool initialized")
    except Exception as e:
        logger.warning("Database initialization skipped", error=str(e))

    yield

    logger.info("Shutting down PatternLens API...")
    await close_db()
    logger.info("Database connections closed")


def _configure_routers(app: FastAPI) -> None:
    """Configure API routers.

    Args:
        app: FastAPI application
    """
    # Health check and metrics endpoints (no prefix - at root level)
    app.include_router(health_router)

    # API v1 routers (patterns, analysis, insights)
    app.include_router(v1_router)
