"""API schemas for ad-hoc detector queries and analysis runs."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from patternlens.db.models.analysis_run import AnalysisRun, RunType
from patternlens.detection.types import GeographicCluster, MonthlySeasonality, WeeklyCount
from patternlens.utils.timeutils import as_utc

# =============================================================================
# Detector queries
# =============================================================================


class ClusterResponse(BaseModel):
    """A density-based cluster of reports."""

    cluster_id: int
    report_ids: list[UUID]
    center_lat: float
    center_lng: float
    report_count: int
    density: float = Field(..., description="Reports per km² of the enclosing circle")
    radius_km: float
    categories: list[str]
    first_date: date | None = None
    last_date: date | None = None


class WeeklyCountResponse(BaseModel):
    """Report volume for one ISO week."""

    week: date = Field(..., description="Monday of the week")
    count: int
    categories: dict[str, int]


class MonthlySeasonalityResponse(BaseModel):
    """Seasonal index for one calendar month."""

    month: int = Field(..., ge=1, le=12)
    count: int
    index: float = Field(..., ge=0.0, description="Month count over the monthly average")
    top_category: str | None = None


# =============================================================================
# Analysis runs
# =============================================================================


class AnalysisRunRequest(BaseModel):
    """Request body for starting an analysis run."""

    run_type: RunType = Field(default=RunType.FULL, description="full or incremental")


class AnalysisRunResponse(BaseModel):
    """Outcome of an analysis run."""

    run_id: UUID
    run_type: str
    status: str
    reports_analyzed: int
    patterns_detected: int
    patterns_updated: int
    patterns_archived: int
    error_message: str | None = None
    started_at: datetime
    completed_at: datetime | None = None
    duration_seconds: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class AnalysisRunListResponse(BaseModel):
    """Most recent analysis runs, newest first."""

    items: list[AnalysisRunResponse]
    limit: int
    offset: int


# =============================================================================
# Converters
# =============================================================================


def cluster_response(cluster: GeographicCluster) -> ClusterResponse:
    return ClusterResponse(
        cluster_id=cluster.cluster_id,
        report_ids=list(cluster.report_ids),
        center_lat=cluster.center_lat,
        center_lng=cluster.center_lng,
        report_count=cluster.report_count,
        density=cluster.density,
        radius_km=cluster.radius_km,
        categories=list(cluster.categories),
        first_date=cluster.first_date,
        last_date=cluster.last_date,
    )


def weekly_count_response(week: WeeklyCount) -> WeeklyCountResponse:
    return WeeklyCountResponse(week=week.week_start, count=week.count, categories=week.categories)


def seasonality_response(month: MonthlySeasonality) -> MonthlySeasonalityResponse:
    return MonthlySeasonalityResponse(
        month=month.month,
        count=month.count,
        index=month.index,
        top_category=month.top_category,
    )


def run_response_from_model(run: AnalysisRun) -> AnalysisRunResponse:
    """Convert an AnalysisRun row to its API representation."""
    return AnalysisRunResponse(
        run_id=run.run_id,
        run_type=run.run_type,
        status=run.status,
        reports_analyzed=run.reports_analyzed,
        patterns_detected=run.patterns_detected,
        patterns_updated=run.patterns_updated,
        patterns_archived=run.patterns_archived,
        error_message=run.error_message,
        started_at=as_utc(run.started_at),
        completed_at=as_utc(run.completed_at) if run.completed_at else None,
        duration_seconds=run.duration_seconds,
        metadata=dict(run.run_metadata or {}),
    )
