"""FastAPI dependencies for API endpoints."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from patternlens.analysis.orchestrator import (
    AnalysisRunOrchestrator,
    create_analysis_orchestrator,
)
from patternlens.config.settings import Settings, get_settings
from patternlens.db.config import get_db, get_session_factory
from patternlens.insights.cache import InsightCache
from patternlens.patterns.service import PatternService

# Re-export database dependencies for convenience
__all__ = [
    "get_db",
    "get_app_settings",
    "get_sessions",
    "get_insight_cache",
    "get_pattern_service",
    "get_orchestrator",
]


def get_app_settings(request: Request) -> Settings:
    """Settings the app was created with, falling back to the process-wide ones."""
    return getattr(request.app.state, "settings", None) or get_settings()


def get_sessions() -> async_sessionmaker[AsyncSession]:
    """Session factory for components that open their own sessions."""
    return get_session_factory()


def get_insight_cache(
    sessions: Annotated[async_sessionmaker[AsyncSession], Depends(get_sessions)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> InsightCache:
    """Get an insight cache bound to the request's session factory.

    The narrative generator is resolved lazily from settings on first use.
    """
    return InsightCache(sessions, config=settings.insights)


def get_pattern_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    insight_cache: Annotated[InsightCache, Depends(get_insight_cache)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> PatternService:
    """Get a PatternService for the request's database session."""
    return PatternService(db, insight_cache=insight_cache, settings=settings)


def get_orchestrator(
    sessions: Annotated[async_sessionmaker[AsyncSession], Depends(get_sessions)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> AnalysisRunOrchestrator:
    """Get an analysis run orchestrator.

    Runs are serialized process-wide, so a fresh instance per request is
    fine.
    """
    return create_analysis_orchestrator(session_factory=sessions, settings=settings)
