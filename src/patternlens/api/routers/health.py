"""Health check and metrics endpoints."""

import time
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from patternlens.analysis.orchestrator import is_run_in_progress
from patternlens.api.dependencies import get_app_settings
from patternlens.api.schemas.health import (
    ComponentHealth,
    HealthDetailResponse,
    HealthResponse,
    HealthStatus,
)
from patternlens.config.settings import Settings
from patternlens.db.config import get_db
from patternlens.insights.cache import in_flight_count
from patternlens.observability.metrics import get_metrics

router = APIRouter(tags=["health"])

# Application version - should come from package metadata in production
APP_VERSION = "0.1.0"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Basic health check",
    description="Returns basic liveness status.",
)
async def health_check() -> HealthResponse:
    """Basic liveness check endpoint.

    Returns 200 if the application is running, regardless of
    dependency health. Use /health/ready for the readiness check.
    """
    return HealthResponse(
        status=HealthStatus.HEALTHY,
        version=APP_VERSION,
        timestamp=datetime.now(UTC),
    )


@router.get(
    "/health/ready",
    response_model=HealthDetailResponse,
    summary="Readiness check",
    description="Checks the database and reports engine activity.",
)
async def health_ready(
    db: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> HealthDetailResponse:
    """Readiness check endpoint.

    The narrative generator is optional: without an API key insights
    fall back to templates, so a missing key only degrades the status.
    """
    db_health = await _check_database(db)

    overall = db_health.status
    if overall == HealthStatus.HEALTHY and settings.anthropic_api_key is None:
        overall = HealthStatus.DEGRADED

    return HealthDetailResponse(
        status=overall,
        version=APP_VERSION,
        timestamp=datetime.now(UTC),
        database=db_health,
        details={
            "analysis_run_in_progress": is_run_in_progress(),
            "insight_generations_in_flight": in_flight_count(),
            "narrative_generator_configured": settings.anthropic_api_key is not None,
        },
    )


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    response_class=Response,
)
async def metrics() -> Response:
    """Expose metrics in the Prometheus text format."""
    return Response(content=get_metrics(), media_type="text/plain; version=0.0.4")


async def _check_database(db: AsyncSession) -> ComponentHealth:
    """Check database connectivity.

    Args:
        db: Database session

    Returns:
        ComponentHealth with database status
    """
    start = time.perf_counter()
    try:
        await db.execute(text("SELECT 1"))
        latency_ms = (time.perf_counter() - start) * 1000

        return ComponentHealth(
            status=HealthStatus.HEALTHY,
            message="Database connection successful",
            latency_ms=round(latency_ms, 2),
        )
    except Exception as e:
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status=HealthStatus.UNHEALTHY,
            message=f"Database connection failed: {str(e)[:100]}",
            latency_ms=round(latency_ms, 2),
        )
