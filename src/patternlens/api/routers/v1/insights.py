"""Insight API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from patternlens.api.dependencies import get_pattern_service
from patternlens.api.schemas.errors import APIError
from patternlens.api.schemas.patterns import InsightResponse, insight_response
from patternlens.patterns.service import PatternService

router = APIRouter(prefix="/insights", tags=["insights"])


@router.get(
    "/digest",
    response_model=InsightResponse,
    summary="Latest weekly digest",
    responses={404: {"model": APIError, "description": "No valid digest"}},
)
async def latest_digest(
    service: Annotated[PatternService, Depends(get_pattern_service)],
) -> InsightResponse:
    """Newest weekly digest that has not expired."""
    view = await service.get_latest_digest()
    if view is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No weekly digest available",
        )
    return insight_response(view)
