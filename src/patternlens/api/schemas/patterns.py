"""API schemas for pattern and insight endpoints.

Response models are kept separate from the ORM models so the wire format
can evolve independently of the schema.
"""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from patternlens.db.models.pattern import DetectedPattern
from patternlens.patterns.service import InsightView, NearbyPattern
from patternlens.utils.timeutils import as_utc

# =============================================================================
# Patterns
# =============================================================================


class PatternResponse(BaseModel):
    """A detected pattern as exposed to API callers."""

    pattern_id: UUID
    pattern_type: str
    status: str
    confidence_score: float = Field(..., ge=0.0, le=1.0)
    significance_score: float = Field(..., ge=0.0, le=1.0)
    report_count: int = Field(..., ge=0)

    center_lat: float | None = None
    center_lng: float | None = None
    radius_km: float | None = None
    pattern_start_date: date | None = None
    pattern_end_date: date | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)
    categories: list[str] = Field(default_factory=list)

    ai_title: str | None = None
    ai_summary: str | None = None

    first_detected_at: datetime
    last_updated_at: datetime
    consecutive_detections: int

    model_config = {"json_schema_extra": {"example": {
        "pattern_id": "019478f2-1234-7000-8000-abcdef123456",
        "pattern_type": "geographic_cluster",
        "status": "active",
        "confidence_score": 0.82,
        "significance_score": 0.64,
        "report_count": 14,
        "center_lat": 45.52,
        "center_lng": -122.68,
        "radius_km": 31.4,
        "metadata": {"kind": "geographic_cluster", "density": 0.004},
        "categories": ["lights", "orb"],
        "first_detected_at": "2026-01-12T06:00:00Z",
        "last_updated_at": "2026-01-30T12:00:00Z",
        "consecutive_detections": 4,
    }}}


class PatternListResponse(BaseModel):
    """Paginated list of patterns."""

    items: list[PatternResponse]
    total: int
    limit: int
    offset: int


class PatternLinkResponse(BaseModel):
    """A member report of a pattern."""

    report_id: UUID
    relevance_score: float = Field(..., ge=0.0, le=1.0)


class PatternDetailResponse(PatternResponse):
    """A pattern together with its member reports."""

    reports: list[PatternLinkResponse] = Field(default_factory=list)


class NearbyPatternResponse(BaseModel):
    """A pattern found near a query point."""

    pattern_id: UUID
    pattern_type: str
    status: str
    distance_km: float
    report_count: int
    significance_score: float


class InsightResponse(BaseModel):
    """A generated or templated narrative."""

    title: str
    content: str
    summary: str
    generated_at: datetime
    model_used: str
    is_fallback: bool = False


# =============================================================================
# Converters
# =============================================================================


def pattern_response_from_model(pattern: DetectedPattern) -> PatternResponse:
    """Convert a DetectedPattern row to its API representation."""
    return PatternResponse(
        pattern_id=pattern.pattern_id,
        pattern_type=pattern.pattern_type,
        status=pattern.status,
        confidence_score=pattern.confidence_score,
        significance_score=pattern.significance_score,
        report_count=pattern.report_count,
        center_lat=pattern.center_lat,
        center_lng=pattern.center_lng,
        radius_km=pattern.radius_km,
        pattern_start_date=pattern.pattern_start_date,
        pattern_end_date=pattern.pattern_end_date,
        metadata=dict(pattern.pattern_metadata or {}),
        categories=list(pattern.categories or []),
        ai_title=pattern.ai_title,
        ai_summary=pattern.ai_summary,
        first_detected_at=as_utc(pattern.first_detected_at),
        last_updated_at=as_utc(pattern.last_updated_at),
        consecutive_detections=pattern.consecutive_detections,
    )


def nearby_response(nearby: NearbyPattern) -> NearbyPatternResponse:
    return NearbyPatternResponse(
        pattern_id=nearby.pattern_id,
        pattern_type=nearby.pattern_type,
        status=nearby.status,
        distance_km=nearby.distance_km,
        report_count=nearby.report_count,
        significance_score=nearby.significance_score,
    )


def insight_response(view: InsightView) -> InsightResponse:
    return InsightResponse(
        title=view.title,
        content=view.content,
        summary=view.summary,
        generated_at=view.generated_at,
        model_used=view.model_used,
        is_fallback=view.is_fallback,
    )
