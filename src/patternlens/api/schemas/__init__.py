"""API schemas for request/response validation."""

from .analysis import (
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
from .errors import APIError, ErrorCode
from .health import ComponentHealth, HealthDetailResponse, HealthResponse, HealthStatus
from .patterns import (
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

__all__ = [
    # Error schemas
    "APIError",
    "ErrorCode",
    # Health schemas
    "ComponentHealth",
    "HealthDetailResponse",
    "HealthResponse",
    "HealthStatus",
    # Pattern schemas
    "InsightResponse",
    "NearbyPatternResponse",
    "PatternDetailResponse",
    "PatternLinkResponse",
    "PatternListResponse",
    "PatternResponse",
    "insight_response",
    "nearby_response",
    "pattern_response_from_model",
    # Analysis schemas
    "AnalysisRunListResponse",
    "AnalysisRunRequest",
    "AnalysisRunResponse",
    "ClusterResponse",
    "MonthlySeasonalityResponse",
    "WeeklyCountResponse",
    "cluster_response",
    "run_response_from_model",
    "seasonality_response",
    "weekly_count_response",
]
