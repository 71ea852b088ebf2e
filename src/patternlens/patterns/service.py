"""Read-side operations over reports, patterns and insights.

``PatternService`` is the entry point used by the HTTP layer: ad-hoc
detector queries over the current report store, proximity and trending
lookups over persisted patterns, and narrative retrieval through the
insight cache.
"""

import asyncio
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from patternlens.config.settings import Settings, get_settings
from patternlens.core.exceptions import DetectionValidationError, PatternNotFoundError
from patternlens.core.logging import get_logger
from patternlens.db.models.insight import PatternInsight
from patternlens.db.models.pattern import DetectedPattern, PatternStatus
from patternlens.db.repositories.pattern import PatternRepository
from patternlens.db.repositories.report import ReportRepository
from patternlens.detection.clustering import (
    detect_geographic_clusters,
    is_valid_coordinate,
    validate_positive_int,
    validate_radius,
)
from patternlens.detection.seasonal import seasonal_index
from patternlens.detection.temporal import weekly_report_counts
from patternlens.detection.types import GeographicCluster, MonthlySeasonality, WeeklyCount
from patternlens.insights.cache import InsightCache
from patternlens.utils.geo import bounding_box, haversine_km
from patternlens.utils.timeutils import as_utc, subtract_years, utc_now

logger = get_logger(__name__)

DEFAULT_NEARBY_STATUSES = (PatternStatus.ACTIVE, PatternStatus.EMERGING)


@dataclass(frozen=True)
class NearbyPattern:
    """A persisted pattern and its distance from a query point."""

    pattern_id: UUID
    pattern_type: str
    status: str
    distance_km: float
    report_count: int
    significance_score: float

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "pattern_id": str(self.pattern_id),
            "pattern_type": self.pattern_type,
            "status": self.status,
            "distance_km": self.distance_km,
            "report_count": self.report_count,
            "significance_score": self.significance_score,
        }


@dataclass(frozen=True)
class InsightView:
    """Narrative as handed to readers."""

    title: str
    content: str
    summary: str
    generated_at: datetime
    model_used: str
    is_fallback: bool = False

    @classmethod
    def from_insight(cls, insight: PatternInsight) -> "InsightView":
        return cls(
            title=insight.title,
            content=insight.content,
            summary=insight.summary,
            generated_at=as_utc(insight.generated_at),
            model_used=insight.model_used,
            is_fallback=insight.is_fallback,
        )


class PatternService:
    """Pattern and insight queries for API callers."""

    def __init__(
        self,
        db: AsyncSession,
        insight_cache: InsightCache | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self._insight_cache = insight_cache
        self._clock = clock
        self.patterns = PatternRepository(db)
        self.reports = ReportRepository(db)

    @property
    def insight_cache(self) -> InsightCache:
        """Insight cache, bound to the process-wide session factory by default."""
        if self._insight_cache is None:
            from patternlens.db.config import get_session_factory

            self._insight_cache = InsightCache(get_session_factory(), config=self.settings.insights)
        return self._insight_cache

    def _today(self) -> date:
        return self._clock().date()

    # -------------------------------------------------------------------------
    # Detector queries
    # -------------------------------------------------------------------------

    async def detect_geographic_clusters(
        self,
        eps_km: float | None = None,
        min_points: int | None = None,
        days_back: int | None = None,
    ) -> list[GeographicCluster]:
        """Cluster the current approved reports.

        Parameters default to the configured detector settings.

        Raises:
            DetectionValidationError: If a parameter is malformed
        """
        detection = self.settings.detection
        eps_km = detection.cluster_eps_km if eps_km is None else eps_km
        min_points = detection.cluster_min_points if min_points is None else min_points
        days_back = detection.cluster_days_back if days_back is None else days_back
        validate_radius("eps_km", eps_km)
        validate_positive_int("min_points", min_points)
        validate_positive_int("days_back", days_back)

        today = self._today()
        snapshot = await self.reports.fetch_snapshot(since=today - timedelta(days=days_back))
        return await asyncio.to_thread(
            detect_geographic_clusters, snapshot, eps_km, min_points, days_back, today
        )

    async def weekly_report_counts(self, weeks_back: int | None = None) -> list[WeeklyCount]:
        """Weekly report volume including the current week.

        Raises:
            DetectionValidationError: If weeks_back is malformed
        """
        if weeks_back is None:
            weeks_back = self.settings.detection.temporal_weeks_back
        validate_positive_int("weeks_back", weeks_back)

        today = self._today()
        snapshot = await self.reports.fetch_snapshot(since=today - timedelta(weeks=weeks_back + 1))
        return weekly_report_counts(snapshot, weeks_back=weeks_back, today=today)

    async def seasonal_index(self, years_back: int = 3) -> list[MonthlySeasonality]:
        """Seasonal index for each calendar month.

        Raises:
            DetectionValidationError: If years_back is malformed
        """
        validate_positive_int("years_back", years_back)

        today = self._today()
        snapshot = await self.reports.fetch_snapshot(since=subtract_years(today, years_back))
        return seasonal_index(snapshot, today=today, years_back=years_back)

    # -------------------------------------------------------------------------
    # Pattern reads
    # -------------------------------------------------------------------------

    async def nearby_patterns(
        self,
        lat: float,
        lng: float,
        radius_km: float,
        limit: int = 10,
        status_filter: Sequence[PatternStatus | str] = DEFAULT_NEARBY_STATUSES,
    ) -> list[NearbyPattern]:
        """Patterns whose centre lies within ``radius_km``, nearest first.

        Raises:
            DetectionValidationError: If the point, radius or limit is malformed
        """
        if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
            raise DetectionValidationError("point", (lat, lng), "coordinates must be numbers")
        if not is_valid_coordinate(lat, lng):
            raise DetectionValidationError("point", (lat, lng), "outside the valid lat/lng range")
        validate_radius("radius_km", radius_km)
        validate_positive_int("limit", limit)

        box = bounding_box(lat, lng, radius_km)
        found = []
        for pattern in await self.patterns.within_box(box, status_filter):
            distance = haversine_km(lat, lng, pattern.center_lat, pattern.center_lng)  # type: ignore[arg-type]
            if distance <= radius_km and math.isfinite(distance):
                found.append(
                    NearbyPattern(
                        pattern_id=pattern.pattern_id,
                        pattern_type=pattern.pattern_type,
                        status=pattern.status,
                        distance_km=distance,
                        report_count=pattern.report_count,
                        significance_score=pattern.significance_score,
                    )
                )

        found.sort(key=lambda n: (n.distance_km, str(n.pattern_id)))
        return found[:limit]

    async def get_trending_patterns(self, limit: int = 10) -> list[DetectedPattern]:
        """Active and emerging patterns by significance descending."""
        validate_positive_int("limit", limit)
        return await self.patterns.trending(limit)

    async def get_pattern(self, pattern_id: UUID) -> DetectedPattern:
        """Get a pattern.

        Raises:
            PatternNotFoundError: If the pattern does not exist
        """
        pattern = await self.patterns.get(pattern_id)
        if pattern is None:
            raise PatternNotFoundError(pattern_id)
        return pattern

    async def list_patterns(
        self,
        pattern_type: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[DetectedPattern], int]:
        """Filtered, paginated patterns and the total matching count."""
        return await self.patterns.list_patterns(
            pattern_type=pattern_type, status=status, limit=limit, offset=offset
        )

    async def get_pattern_links(self, pattern_id: UUID) -> list[tuple[UUID, float]]:
        """Member report ids of a pattern with their relevance."""
        await self.get_pattern(pattern_id)
        links = await self.patterns.get_links(pattern_id)
        return [(link.report_id, link.relevance_score) for link in links]

    # -------------------------------------------------------------------------
    # Insights
    # -------------------------------------------------------------------------

    async def get_insight(self, pattern_id: UUID) -> InsightView:
        """Narrative for a pattern, generated on a cache miss.

        Generator failures never surface here; a templated narrative is
        returned instead.

        Raises:
            PatternNotFoundError: If the pattern does not exist
        """
        insight = await self.insight_cache.get_or_generate(pattern_id)
        return InsightView.from_insight(insight)

    async def get_latest_digest(self) -> InsightView | None:
        digest = await self.insight_cache.get_latest_digest()
        return InsightView.from_insight(digest) if digest is not None else None
