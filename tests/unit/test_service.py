"""Unit tests for PatternService.

Tests cover:
- Proximity search (radius, ordering, status filter, validation)
- Pattern lookups and trending
- Ad-hoc detector queries over the report store
- Insight retrieval through the cache
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from factories import (
    NOW,
    PORTLAND,
    TODAY,
    FakeNarrativeGenerator,
    make_pattern,
    make_point,
    make_report,
    offset,
    points_around,
)
from patternlens.core.exceptions import DetectionValidationError, PatternNotFoundError
from patternlens.db.models.pattern import PatternStatus, PatternType
from patternlens.insights.cache import InsightCache
from patternlens.patterns.service import InsightView, PatternService


@pytest.fixture
def make_service(db_session, session_factory, test_settings, fixed_clock):
    def _make(generator: FakeNarrativeGenerator | None = None) -> PatternService:
        cache = InsightCache(
            session_factory,
            generator=generator or FakeNarrativeGenerator(),
            config=test_settings.insights,
            clock=fixed_clock,
        )
        return PatternService(
            db_session, insight_cache=cache, settings=test_settings, clock=fixed_clock
        )

    return _make


# =============================================================================
# Nearby patterns
# =============================================================================


class TestNearbyPatterns:
    """Tests for PatternService.nearby_patterns."""

    @pytest.mark.asyncio
    async def test_sorted_by_distance_within_radius(self, make_service, seed) -> None:
        """Test results are nearest first and the radius is honoured."""
        near = make_pattern(center=offset(*PORTLAND, north_km=5))
        mid = make_pattern(center=offset(*PORTLAND, east_km=20))
        far = make_pattern(center=offset(*PORTLAND, north_km=80))
        await seed(far, mid, near)

        found = await make_service().nearby_patterns(*PORTLAND, radius_km=50)

        assert [n.pattern_id for n in found] == [near.pattern_id, mid.pattern_id]
        assert found[0].distance_km == pytest.approx(5, rel=0.02)
        assert found[1].distance_km == pytest.approx(20, rel=0.02)

    @pytest.mark.asyncio
    async def test_default_status_filter(self, make_service, seed) -> None:
        """Test declining and historical patterns are excluded by default."""
        active = make_pattern(status=PatternStatus.ACTIVE)
        emerging = make_pattern(status=PatternStatus.EMERGING)
        await seed(
            active,
            emerging,
            make_pattern(status=PatternStatus.DECLINING),
            make_pattern(status=PatternStatus.HISTORICAL),
        )

        found = await make_service().nearby_patterns(*PORTLAND, radius_km=10)

        assert {n.pattern_id for n in found} == {active.pattern_id, emerging.pattern_id}

    @pytest.mark.asyncio
    async def test_explicit_status_filter(self, make_service, seed) -> None:
        """Test callers can ask for other statuses."""
        historical = make_pattern(status=PatternStatus.HISTORICAL)
        await seed(historical, make_pattern(status=PatternStatus.ACTIVE))

        found = await make_service().nearby_patterns(
            *PORTLAND, radius_km=10, status_filter=[PatternStatus.HISTORICAL]
        )

        assert [n.pattern_id for n in found] == [historical.pattern_id]

    @pytest.mark.asyncio
    async def test_limit(self, make_service, seed) -> None:
        """Test the limit caps the result."""
        await seed(*(make_pattern(center=offset(*PORTLAND, north_km=i)) for i in range(5)))

        found = await make_service().nearby_patterns(*PORTLAND, radius_km=50, limit=3)

        assert [round(n.distance_km) for n in found] == [0, 1, 2]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("lat", "lng", "radius"),
        [(91.0, 0.0, 10.0), (0.0, 181.0, 10.0), (45.0, -122.0, 0.0), (45.0, -122.0, -5.0)],
    )
    async def test_invalid_arguments(self, make_service, lat, lng, radius) -> None:
        """Test malformed points and radii are rejected."""
        with pytest.raises(DetectionValidationError):
            await make_service().nearby_patterns(lat, lng, radius_km=radius)


# =============================================================================
# Pattern reads
# =============================================================================


class TestPatternReads:
    """Tests for get_pattern, trending and listing."""

    @pytest.mark.asyncio
    async def test_get_pattern_not_found(self, make_service) -> None:
        """Test unknown ids raise PatternNotFoundError."""
        with pytest.raises(PatternNotFoundError):
            await make_service().get_pattern(uuid4())

    @pytest.mark.asyncio
    async def test_get_pattern(self, make_service, seed) -> None:
        """Test a stored pattern is returned."""
        pattern = make_pattern()
        await seed(pattern)

        found = await make_service().get_pattern(pattern.pattern_id)

        assert found.pattern_id == pattern.pattern_id

    @pytest.mark.asyncio
    async def test_trending(self, make_service, seed) -> None:
        """Test trending is ordered by significance."""
        low = make_pattern(significance=0.1)
        high = make_pattern(significance=0.9, status=PatternStatus.EMERGING)
        await seed(low, high, make_pattern(status=PatternStatus.HISTORICAL, significance=1.0))

        trending = await make_service().get_trending_patterns(limit=5)

        assert [p.pattern_id for p in trending] == [high.pattern_id, low.pattern_id]

    @pytest.mark.asyncio
    async def test_trending_limit_validated(self, make_service) -> None:
        """Test a non-positive limit is rejected."""
        with pytest.raises(DetectionValidationError):
            await make_service().get_trending_patterns(limit=0)

    @pytest.mark.asyncio
    async def test_pattern_links(self, make_service, seed) -> None:
        """Test member reports are listed for a pattern."""
        pattern = make_pattern(report_count=0)
        await seed(pattern)

        assert await make_service().get_pattern_links(pattern.pattern_id) == []


# =============================================================================
# Detector queries
# =============================================================================


class TestDetectorQueries:
    """Tests for the ad-hoc detector queries."""

    @pytest.mark.asyncio
    async def test_clusters_use_configured_defaults(self, make_service, seed) -> None:
        """Test clusters are found over approved reports with default settings."""
        await seed(*(make_report(p) for p in points_around(PORTLAND, 6)))

        clusters = await make_service().detect_geographic_clusters()

        assert len(clusters) == 1
        assert clusters[0].report_count == 6

    @pytest.mark.asyncio
    async def test_clusters_respect_days_back(self, make_service, seed) -> None:
        """Test reports older than the window are ignored."""
        old = TODAY - timedelta(days=60)
        await seed(*(make_report(p) for p in points_around(PORTLAND, 6, day=old)))

        assert await make_service().detect_geographic_clusters(days_back=30) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kwargs", [{"eps_km": -1.0}, {"eps_km": 0.0}, {"min_points": 0}, {"days_back": 0}]
    )
    async def test_cluster_validation(self, make_service, kwargs) -> None:
        """Test malformed parameters are rejected."""
        with pytest.raises(DetectionValidationError):
            await make_service().detect_geographic_clusters(**kwargs)

    @pytest.mark.asyncio
    async def test_weekly_counts(self, make_service, seed) -> None:
        """Test weekly counts cover the requested window plus the current week."""
        await seed(make_report(make_point(day=TODAY)), make_report(make_point(day=TODAY)))

        counts = await make_service().weekly_report_counts(weeks_back=4)

        assert len(counts) == 5
        assert counts[-1].count == 2
        assert sum(c.count for c in counts) == 2

    @pytest.mark.asyncio
    async def test_seasonal_index(self, make_service, seed) -> None:
        """Test the seasonal index has one entry per month."""
        await seed(make_report(make_point(day=TODAY - timedelta(days=30))))

        months = await make_service().seasonal_index(years_back=2)

        assert [m.month for m in months] == list(range(1, 13))


# =============================================================================
# Insights
# =============================================================================


class TestInsights:
    """Tests for insight retrieval."""

    @pytest.mark.asyncio
    async def test_get_insight_generates(self, make_service, seed) -> None:
        """Test a narrative is generated and returned as an InsightView."""
        generator = FakeNarrativeGenerator()
        pattern = make_pattern(updated_at=NOW)
        await seed(pattern)

        view = await make_service(generator).get_insight(pattern.pattern_id)

        assert isinstance(view, InsightView)
        assert view.title == "Cluster of Lights Over Portland"
        assert view.model_used == "fake-model"
        assert view.is_fallback is False
        assert len(generator.calls) == 1

    @pytest.mark.asyncio
    async def test_get_insight_unknown_pattern(self, make_service) -> None:
        """Test unknown patterns raise PatternNotFoundError."""
        with pytest.raises(PatternNotFoundError):
            await make_service().get_insight(uuid4())

    @pytest.mark.asyncio
    async def test_no_digest(self, make_service) -> None:
        """Test no digest yields None."""
        assert await make_service().get_latest_digest() is None

    @pytest.mark.asyncio
    async def test_generic_type_insight(self, make_service, seed) -> None:
        """Test types without a detector still get narratives."""
        pattern = make_pattern(pattern_type=PatternType.DATE_CORRELATION, center=None)
        await seed(pattern)

        view = await make_service().get_insight(pattern.pattern_id)

        assert view.content
