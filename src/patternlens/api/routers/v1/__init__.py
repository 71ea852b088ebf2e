"""API v1 routers."""

from fastapi import APIRouter

from .analysis import router as analysis_router
from .insights import router as insights_router
from .patterns import router as patterns_router

# Create v1 router that includes all v1 endpoints
router = APIRouter(prefix="/v1")

router.include_router(patterns_router)
router.include_router(analysis_router)
router.include_router(insights_router)

__all__ = ["router", "patterns_router", "analysis_router", "insights_router"]
