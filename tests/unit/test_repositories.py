"""Unit tests for database repositories.

Tests cover:
- ReportRepository snapshots
- PatternRepository filters, trending, bounding box and link queries
- InsightRepository validity rules
- AnalysisRunRepository run bookkeeping
"""

from datetime import timedelta

import pytest

from factories import NOW, TODAY, make_pattern, make_point, make_report
from patternlens.db.models.analysis_run import AnalysisRun, RunStatus, RunType
from patternlens.db.models.insight import InsightType, PatternInsight
from patternlens.db.models.pattern import PatternStatus, PatternType
from patternlens.db.models.report import ReportStatus
from patternlens.db.repositories import (
    AnalysisRunRepository,
    InsightRepository,
    PatternRepository,
    ReportRepository,
)
from patternlens.utils.geo import bounding_box


def make_insight(pattern=None, **overrides) -> PatternInsight:
    values = {
        "pattern_id": pattern.pattern_id if pattern is not None else None,
        "insight_type": (
            InsightType.PATTERN_NARRATIVE.value
            if pattern is not None
            else InsightType.WEEKLY_DIGEST.value
        ),
        "title": "Title",
        "content": "Content",
        "summary": "Summary",
        "model_used": "fake-model",
        "generated_at": NOW - timedelta(hours=1),
        "valid_until": NOW + timedelta(days=1),
    }
    values.update(overrides)
    return PatternInsight(**values)


def make_run(status: RunStatus, started_at) -> AnalysisRun:
    return AnalysisRun(
        run_type=RunType.FULL.value,
        status=status.value,
        started_at=started_at,
        run_metadata={},
    )


# =============================================================================
# ReportRepository
# =============================================================================


class TestReportRepository:
    """Tests for ReportRepository.fetch_snapshot."""

    @pytest.mark.asyncio
    async def test_only_approved_reports(self, db_session, seed) -> None:
        """Test pending and rejected reports are excluded."""
        approved = make_point()
        await seed(
            make_report(approved),
            make_report(make_point(), status=ReportStatus.PENDING),
            make_report(make_point(), status=ReportStatus.REJECTED),
        )

        snapshot = await ReportRepository(db_session).fetch_snapshot()

        assert [p.report_id for p in snapshot] == [approved.report_id]

    @pytest.mark.asyncio
    async def test_ordered_by_id(self, db_session, seed) -> None:
        """Test snapshots are returned in a stable order."""
        points = [make_point() for _ in range(5)]
        await seed(*(make_report(p) for p in reversed(points)))

        snapshot = await ReportRepository(db_session).fetch_snapshot()

        assert [p.report_id for p in snapshot] == sorted(p.report_id for p in points)

    @pytest.mark.asyncio
    async def test_since_filter(self, db_session, seed) -> None:
        """Test old and undated reports are dropped when since is set."""
        recent = make_point(day=TODAY)
        await seed(
            make_report(recent),
            make_report(make_point(day=TODAY - timedelta(days=40))),
            make_report(make_point(day=None)),
        )

        repo = ReportRepository(db_session)
        snapshot = await repo.fetch_snapshot(since=TODAY - timedelta(days=30))

        assert [p.report_id for p in snapshot] == [recent.report_id]
        assert len(await repo.fetch_snapshot()) == 3

    @pytest.mark.asyncio
    async def test_missing_coordinates_preserved(self, db_session, seed) -> None:
        """Test ungeocoded reports come back with None coordinates."""
        await seed(make_report(make_point(lat=None, lng=None)))

        (point,) = await ReportRepository(db_session).fetch_snapshot()

        assert point.latitude is None
        assert not point.is_geocoded


# =============================================================================
# PatternRepository
# =============================================================================


class TestPatternRepository:
    """Tests for PatternRepository queries."""

    @pytest.mark.asyncio
    async def test_list_patterns_filters_and_total(self, db_session, seed) -> None:
        """Test type and status filters apply to both page and total."""
        await seed(
            make_pattern(significance=0.9),
            make_pattern(significance=0.3),
            make_pattern(status=PatternStatus.HISTORICAL),
            make_pattern(pattern_type=PatternType.FLAP_WAVE),
        )
        repo = PatternRepository(db_session)

        page, total = await repo.list_patterns(
            pattern_type=PatternType.GEOGRAPHIC_CLUSTER.value,
            status=PatternStatus.ACTIVE.value,
            limit=1,
        )

        assert total == 2
        assert len(page) == 1
        assert page[0].significance_score == 0.9

        _, everything = await repo.list_patterns()
        assert everything == 4

    @pytest.mark.asyncio
    async def test_trending_order_and_statuses(self, db_session, seed) -> None:
        """Test trending returns live patterns by significance descending."""
        low = make_pattern(significance=0.2, status=PatternStatus.EMERGING)
        high = make_pattern(significance=0.8)
        declining = make_pattern(significance=0.99, status=PatternStatus.DECLINING)
        await seed(low, high, declining)

        trending = await PatternRepository(db_session).trending(limit=10)

        assert [p.pattern_id for p in trending] == [high.pattern_id, low.pattern_id]

    @pytest.mark.asyncio
    async def test_trending_limit(self, db_session, seed) -> None:
        """Test the limit caps the result."""
        await seed(*(make_pattern(significance=i / 10) for i in range(5)))

        trending = await PatternRepository(db_session).trending(limit=2)

        assert [p.significance_score for p in trending] == [0.4, 0.3]

    @pytest.mark.asyncio
    async def test_within_box_wraps_antimeridian(self, db_session, seed) -> None:
        """Test a box crossing the antimeridian finds patterns on both sides."""
        east = make_pattern(center=(0.0, 179.8))
        west = make_pattern(center=(0.0, -179.8))
        far = make_pattern(center=(0.0, 170.0))
        await seed(east, west, far)

        box = bounding_box(0.0, 180.0, 50.0)
        found = await PatternRepository(db_session).within_box(box, [PatternStatus.ACTIVE])

        assert box.wraps_antimeridian
        assert {p.pattern_id for p in found} == {east.pattern_id, west.pattern_id}

    @pytest.mark.asyncio
    async def test_within_box_skips_non_spatial(self, db_session, seed) -> None:
        """Test patterns without a centre never match."""
        await seed(make_pattern(pattern_type=PatternType.SEASONAL_PATTERN, center=None))

        box = bounding_box(45.52, -122.68, 100.0)
        found = await PatternRepository(db_session).within_box(box, [PatternStatus.ACTIVE])

        assert found == []

    @pytest.mark.asyncio
    async def test_replace_links(self, db_session, seed) -> None:
        """Test links are rewritten while retained links keep added_at."""
        pattern = make_pattern()
        kept, departed, added = make_point(), make_point(), make_point()
        await seed(pattern, make_report(kept), make_report(departed), make_report(added))
        repo = PatternRepository(db_session)

        await repo.replace_links(
            pattern.pattern_id, {kept.report_id: 0.5, departed.report_id: 0.5}, NOW
        )
        later = NOW + timedelta(hours=6)
        count = await repo.replace_links(
            pattern.pattern_id, {kept.report_id: 0.9, added.report_id: 0.4}, later
        )

        links = {link.report_id: link for link in await repo.get_links(pattern.pattern_id)}
        assert count == 2
        assert set(links) == {kept.report_id, added.report_id}
        assert links[kept.report_id].relevance_score == 0.9
        assert links[kept.report_id].added_at.replace(tzinfo=None) == NOW.replace(tzinfo=None)
        assert links[added.report_id].added_at.replace(tzinfo=None) == later.replace(
            tzinfo=None
        )

    @pytest.mark.asyncio
    async def test_untouched_since(self, db_session, seed) -> None:
        """Test only live patterns older than the cutoff are returned."""
        stale = make_pattern(updated_at=NOW - timedelta(days=40))
        fresh = make_pattern(updated_at=NOW)
        historical = make_pattern(
            status=PatternStatus.HISTORICAL, updated_at=NOW - timedelta(days=40)
        )
        await seed(stale, fresh, historical)

        found = await PatternRepository(db_session).untouched_since(NOW - timedelta(days=30))

        assert [p.pattern_id for p in found] == [stale.pattern_id]


# =============================================================================
# InsightRepository
# =============================================================================


class TestInsightRepository:
    """Tests for InsightRepository validity queries."""

    @pytest.mark.asyncio
    async def test_valid_narrative_excludes_stale_and_expired(self, db_session, seed) -> None:
        """Test only fresh, unexpired narratives are served."""
        pattern = make_pattern()
        await seed(pattern)
        await seed(
            make_insight(pattern, is_stale=True),
            make_insight(pattern, valid_until=NOW - timedelta(minutes=1)),
        )
        repo = InsightRepository(db_session)

        assert await repo.get_valid_narrative(pattern.pattern_id, NOW) is None

        fresh = make_insight(pattern)
        await seed(fresh)
        found = await repo.get_valid_narrative(pattern.pattern_id, NOW)
        assert found is not None
        assert found.insight_id == fresh.insight_id

    @pytest.mark.asyncio
    async def test_valid_narrative_prefers_newest(self, db_session, seed) -> None:
        """Test the most recently generated narrative wins."""
        pattern = make_pattern()
        await seed(pattern)
        older = make_insight(pattern, generated_at=NOW - timedelta(hours=5))
        newer = make_insight(pattern, generated_at=NOW - timedelta(hours=1))
        await seed(older, newer)

        found = await InsightRepository(db_session).get_valid_narrative(pattern.pattern_id, NOW)

        assert found.insight_id == newer.insight_id

    @pytest.mark.asyncio
    async def test_mark_stale_counts_fresh_rows(self, db_session, seed) -> None:
        """Test only rows not already stale are counted."""
        pattern = make_pattern()
        await seed(pattern)
        await seed(
            make_insight(pattern), make_insight(pattern), make_insight(pattern, is_stale=True)
        )
        repo = InsightRepository(db_session)

        assert await repo.mark_stale(pattern.pattern_id) == 2
        assert await repo.get_valid_narrative(pattern.pattern_id, NOW) is None

    @pytest.mark.asyncio
    async def test_latest_digest(self, db_session, seed) -> None:
        """Test digests are looked up independently of any pattern."""
        pattern = make_pattern()
        await seed(pattern)
        await seed(make_insight(pattern))
        repo = InsightRepository(db_session)

        assert await repo.latest_digest(NOW) is None

        digest = make_insight()
        await seed(digest, make_insight(valid_until=NOW - timedelta(days=1)))
        found = await repo.latest_digest(NOW)
        assert found.insight_id == digest.insight_id
        assert found.pattern_id is None


# =============================================================================
# AnalysisRunRepository
# =============================================================================


class TestAnalysisRunRepository:
    """Tests for AnalysisRunRepository bookkeeping."""

    @pytest.mark.asyncio
    async def test_get_running(self, db_session, seed) -> None:
        """Test the running run is found and finished runs are ignored."""
        running = make_run(RunStatus.RUNNING, NOW - timedelta(minutes=5))
        await seed(make_run(RunStatus.COMPLETED, NOW - timedelta(hours=1)), running)

        found = await AnalysisRunRepository(db_session).get_running()

        assert found.run_id == running.run_id

    @pytest.mark.asyncio
    async def test_fail_abandoned(self, db_session, seed) -> None:
        """Test only runs started before the cutoff are failed."""
        old = make_run(RunStatus.RUNNING, NOW - timedelta(hours=2))
        recent = make_run(RunStatus.RUNNING, NOW - timedelta(minutes=5))
        await seed(old, recent)
        repo = AnalysisRunRepository(db_session)

        failed = await repo.fail_abandoned(NOW - timedelta(hours=1), NOW)

        assert failed == 1
        stored = await repo.get(old.run_id)
        assert stored.status == RunStatus.FAILED.value
        assert stored.error_message.startswith("Run abandoned")
        assert (await repo.get_running()).run_id == recent.run_id

    @pytest.mark.asyncio
    async def test_mark_failed(self, db_session, seed) -> None:
        """Test failure details are written to the row."""
        run = make_run(RunStatus.RUNNING, NOW - timedelta(minutes=5))
        await seed(run)
        repo = AnalysisRunRepository(db_session)

        await repo.mark_failed(run.run_id, "boom", "Traceback ...", NOW)

        stored = await repo.get(run.run_id)
        assert stored.status == RunStatus.FAILED.value
        assert stored.error_message == "boom"
        assert stored.error_stack == "Traceback ..."

    @pytest.mark.asyncio
    async def test_list_recent(self, db_session, seed) -> None:
        """Test runs are listed newest first."""
        runs = [make_run(RunStatus.COMPLETED, NOW - timedelta(hours=h)) for h in (3, 1, 2)]
        await seed(*runs)

        recent = await AnalysisRunRepository(db_session).list_recent(limit=2)

        assert [r.run_id for r in recent] == [runs[1].run_id, runs[2].run_id]
