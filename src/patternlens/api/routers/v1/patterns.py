"""Pattern API endpoints.

This module provides REST API endpoints for persisted patterns:
- GET /v1/patterns - List patterns with filters
- GET /v1/patterns/trending - Most significant live patterns
- GET /v1/patterns/nearby - Patterns near a point
- GET /v1/patterns/{pattern_id} - Pattern with member reports
- GET /v1/patterns/{pattern_id}/insight - Narrative for a pattern
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from patternlens.api.dependencies import get_pattern_service
from patternlens.api.schemas.errors import APIError
from patternlens.api.schemas.patterns import (
    InsightResponse,
    NearbyPatternResponse,
    PatternDetailResponse,
    PatternLinkResponse,
    PatternListResponse,
    PatternResponse,
    insight_response,
    nearby_response,
    pattern_response_from_model,
)
from patternlens.core.logging import get_logger
from patternlens.db.models.pattern import PatternStatus, PatternType
from patternlens.patterns.service import DEFAULT_NEARBY_STATUSES, PatternService

logger = get_logger(__name__)

router = APIRouter(prefix="/patterns", tags=["patterns"])

Service = Annotated[PatternService, Depends(get_pattern_service)]


@router.get(
    "",
    response_model=PatternListResponse,
    summary="List patterns",
    responses={422: {"model": APIError, "description": "Validation error"}},
)
async def list_patterns(
    service: Service,
    pattern_type: Annotated[PatternType | None, Query(description="Filter by type")] = None,
    status: Annotated[PatternStatus | None, Query(description="Filter by status")] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> PatternListResponse:
    """List patterns, most significant first."""
    items, total = await service.list_patterns(
        pattern_type=pattern_type.value if pattern_type else None,
        status=status.value if status else None,
        limit=limit,
        offset=offset,
    )
    return PatternListResponse(
        items=[pattern_response_from_model(p) for p in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/trending",
    response_model=list[PatternResponse],
    summary="Trending patterns",
    description="Active and emerging patterns ordered by significance.",
)
async def trending_patterns(
    service: Service,
    limit: Annotated[int, Query(ge=1, le=20)] = 10,
) -> list[PatternResponse]:
    patterns = await service.get_trending_patterns(limit)
    return [pattern_response_from_model(p) for p in patterns]


@router.get(
    "/nearby",
    response_model=list[NearbyPatternResponse],
    summary="Patterns near a point",
    description="Patterns whose centre lies within the radius, nearest first.",
    responses={422: {"model": APIError, "description": "Invalid point or radius"}},
)
async def nearby_patterns(
    service: Service,
    lat: Annotated[float, Query(ge=-90, le=90)],
    lng: Annotated[float, Query(ge=-180, le=180)],
    radius_km: Annotated[float, Query(gt=0, le=20000)] = 50.0,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    status: Annotated[list[PatternStatus] | None, Query()] = None,
) -> list[NearbyPatternResponse]:
    found = await service.nearby_patterns(
        lat,
        lng,
        radius_km,
        limit=limit,
        status_filter=status or DEFAULT_NEARBY_STATUSES,
    )
    return [nearby_response(n) for n in found]


@router.get(
    "/{pattern_id}",
    response_model=PatternDetailResponse,
    summary="Get a pattern",
    responses={404: {"model": APIError, "description": "Pattern not found"}},
)
async def get_pattern(pattern_id: UUID, service: Service) -> PatternDetailResponse:
    pattern = await service.get_pattern(pattern_id)
    links = await service.get_pattern_links(pattern_id)
    return PatternDetailResponse(
        **pattern_response_from_model(pattern).model_dump(),
        reports=[
            PatternLinkResponse(report_id=report_id, relevance_score=relevance)
            for report_id, relevance in links
        ],
    )


@router.get(
    "/{pattern_id}/insight",
    response_model=InsightResponse,
    summary="Get the narrative for a pattern",
    description="""
    Returns the cached narrative when it is still valid, otherwise
    generates a new one. If the narrative generator is unavailable a
    templated narrative is returned instead (``is_fallback`` is true).
    """,
    responses={404: {"model": APIError, "description": "Pattern not found"}},
)
async def get_pattern_insight(pattern_id: UUID, service: Service) -> InsightResponse:
    view = await service.get_insight(pattern_id)
    logger.debug(
        "Insight served",
        pattern_id=str(pattern_id),
        model_used=view.model_used,
        fallback=view.is_fallback,
    )
    return insight_response(view)
