"""Analysis API endpoints.

This module provides REST API endpoints for detector queries and runs:
- GET /v1/analysis/clusters - Ad-hoc geographic clustering
- GET /v1/analysis/weekly-counts - Weekly report volume
- GET /v1/analysis/seasonal-index - Month-of-year seasonality
- POST /v1/analysis/runs - Execute an analysis run
- GET /v1/analysis/runs - Recent analysis runs
"""

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from patternlens.analysis.orchestrator import AnalysisRunOrchestrator
from patternlens.api.dependencies import get_db, get_orchestrator, get_pattern_service
from patternlens.api.schemas.analysis import (
    AnalysisRunListResponse,
    AnalysisRunRequest,
    AnalysisRunResponse,
    ClusterResponse,
    MonthlySeasonalityResponse,
    WeeklyCountResponse,
    cluster_response,
    run_response_from_model,
    seasonality_response,
    weekly_count_response,
)
from patternlens.api.schemas.errors import APIError
from patternlens.db.repositories.analysis_run import AnalysisRunRepository
from patternlens.patterns.service import PatternService

router = APIRouter(prefix="/analysis", tags=["analysis"])

Service = Annotated[PatternService, Depends(get_pattern_service)]


# =============================================================================
# Detector queries
# =============================================================================


@router.get(
    "/clusters",
    response_model=list[ClusterResponse],
    summary="Geographic clusters",
    description="""
    Run density-based clustering over the current approved reports.
    Parameters left out use the configured detector defaults.
    """,
    responses={422: {"model": APIError, "description": "Invalid parameter"}},
)
async def geographic_clusters(
    service: Service,
    eps_km: Annotated[float | None, Query(description="Neighbourhood radius (km)")] = None,
    min_points: Annotated[int | None, Query(description="Minimum neighbourhood size")] = None,
    days_back: Annotated[int | None, Query(description="Recency window (days)")] = None,
) -> list[ClusterResponse]:
    clusters = await service.detect_geographic_clusters(
        eps_km=eps_km, min_points=min_points, days_back=days_back
    )
    return [cluster_response(c) for c in clusters]


@router.get(
    "/weekly-counts",
    response_model=list[WeeklyCountResponse],
    summary="Weekly report counts",
    responses={422: {"model": APIError, "description": "Invalid parameter"}},
)
async def weekly_counts(
    service: Service,
    weeks_back: Annotated[int | None, Query(description="Weeks of history")] = None,
) -> list[WeeklyCountResponse]:
    weeks = await service.weekly_report_counts(weeks_back=weeks_back)
    return [weekly_count_response(w) for w in weeks]


@router.get(
    "/seasonal-index",
    response_model=list[MonthlySeasonalityResponse],
    summary="Seasonal index per month",
    responses={422: {"model": APIError, "description": "Invalid parameter"}},
)
async def seasonal_index(
    service: Service,
    years_back: Annotated[int, Query(description="Years of history")] = 3,
) -> list[MonthlySeasonalityResponse]:
    months = await service.seasonal_index(years_back=years_back)
    return [seasonality_response(m) for m in months]


# =============================================================================
# Runs
# =============================================================================


@router.post(
    "/runs",
    response_model=AnalysisRunResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Execute an analysis run",
    description="""
    Runs the detectors and reconciles their output with the stored
    patterns. A failed run is still returned, with status ``failed``
    and the error message recorded.
    """,
    responses={409: {"model": APIError, "description": "A run is already in progress"}},
)
async def start_run(
    orchestrator: Annotated[AnalysisRunOrchestrator, Depends(get_orchestrator)],
    request: Annotated[AnalysisRunRequest | None, Body()] = None,
) -> AnalysisRunResponse:
    run_type = request.run_type if request else AnalysisRunRequest().run_type
    run = await orchestrator.run(run_type=run_type, trigger="api")
    return run_response_from_model(run)


@router.get(
    "/runs",
    response_model=AnalysisRunListResponse,
    summary="Recent analysis runs",
)
async def list_runs(
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> AnalysisRunListResponse:
    runs = await AnalysisRunRepository(db).list_recent(limit=limit, offset=offset)
    return AnalysisRunListResponse(
        items=[run_response_from_model(r) for r in runs],
        limit=limit,
        offset=offset,
    )
