"""Unit tests for geographic clustering.

Tests cover:
- DBSCAN core-point rule (point itself counts towards min_points)
- Minimum cluster size and noise handling
- Determinism and input-order independence
- Clusters spanning the antimeridian
- Density of coincident reports
- Recency window and data-quality filtering
- Parameter validation
- Conversion of clusters into pattern candidates
"""

import random
from datetime import timedelta

import pytest

from factories import PORTLAND, TODAY, make_point, offset, points_around
from patternlens.core.exceptions import DetectionValidationError
from patternlens.detection.clustering import (
    ClusterDetector,
    ClusterDetectorConfig,
    GridIndex,
    dbscan,
    detect_geographic_clusters,
)
from patternlens.detection.metadata import GeographicClusterMetadata

SEATTLE = (47.61, -122.33)


def cluster(reports, eps_km: float = 50.0, min_points: int = 5, days_back: int = 365):
    return detect_geographic_clusters(
        reports, eps_km=eps_km, min_points=min_points, days_back=days_back, today=TODAY
    )


# =============================================================================
# DBSCAN
# =============================================================================


class TestDBSCAN:
    """Tests for the generic DBSCAN pass."""

    @staticmethod
    def line_neighbors(positions: list[float], eps: float):
        def neighbors(i: int) -> list[int]:
            return [j for j, p in enumerate(positions) if abs(p - positions[i]) <= eps]

        return neighbors

    def test_point_counts_towards_its_own_neighbourhood(self) -> None:
        """Test three points within eps form a cluster with min_points=3."""
        positions = [0.0, 1.0, 2.0]
        clusters = dbscan(3, self.line_neighbors(positions, 2.0), min_points=3)
        assert [sorted(c) for c in clusters] == [[0, 1, 2]]

    def test_sparse_points_are_noise(self) -> None:
        """Test isolated points form no cluster."""
        positions = [0.0, 10.0, 20.0]
        assert dbscan(3, self.line_neighbors(positions, 1.0), min_points=2) == []

    def test_border_point_joins_cluster(self) -> None:
        """Test a non-core point reachable from a core point is a member."""
        positions = [0.0, 0.5, 1.0, 2.0]
        clusters = dbscan(4, self.line_neighbors(positions, 1.0), min_points=3)
        assert len(clusters) == 1
        assert sorted(clusters[0]) == [0, 1, 2, 3]

    def test_two_separate_groups(self) -> None:
        """Test distant groups become separate clusters."""
        positions = [0.0, 0.1, 0.2, 10.0, 10.1, 10.2]
        clusters = dbscan(6, self.line_neighbors(positions, 0.5), min_points=3)
        assert [sorted(c) for c in clusters] == [[0, 1, 2], [3, 4, 5]]


class TestGridIndex:
    """Tests for the spatial grid index."""

    def test_candidates_include_nearby_points(self) -> None:
        """Test a lookup returns points within the radius."""
        points = [PORTLAND, offset(*PORTLAND, north_km=20), SEATTLE]
        index = GridIndex(points, 50.0)
        found = set(index.candidates(PORTLAND[0], PORTLAND[1], 50.0))
        assert {0, 1} <= found
        assert 2 not in found

    def test_candidates_wrap_antimeridian(self) -> None:
        """Test lookups near 180 degrees see points on the other side."""
        points = [(0.0, 179.99), (0.0, -179.99)]
        index = GridIndex(points, 50.0)
        assert set(index.candidates(0.0, 179.99, 50.0)) == {0, 1}

    def test_candidates_wrap_into_last_column(self) -> None:
        """Test lookups reach the last longitude column across 180 degrees."""
        points = [(0.0, 179.62), (0.0, -179.95)]
        index = GridIndex(points, 50.0)

        assert index.lng_cell_deg * index.lng_cells == pytest.approx(360.0)
        assert set(index.candidates(0.0, -179.95, 50.0)) == {0, 1}
        assert set(index.candidates(0.0, 179.62, 50.0)) == {0, 1}


# =============================================================================
# detect_geographic_clusters
# =============================================================================


class TestDetectGeographicClusters:
    """Tests for detect_geographic_clusters."""

    def test_six_close_reports_form_one_cluster(self) -> None:
        """Test six reports within a few km form a single cluster."""
        reports = points_around(PORTLAND, 6)
        clusters = cluster(reports)

        assert len(clusters) == 1
        found = clusters[0]
        assert found.cluster_id == 0
        assert found.report_count == 6
        assert set(found.report_ids) == {r.report_id for r in reports}
        assert found.center_lat == pytest.approx(PORTLAND[0], abs=0.01)
        assert found.center_lng == pytest.approx(PORTLAND[1], abs=0.01)
        assert found.radius_km == pytest.approx(2.0, rel=0.05)
        assert found.density > 0
        assert found.first_date == TODAY
        assert found.last_date == TODAY

    def test_four_reports_are_not_enough(self) -> None:
        """Test fewer than min_points reports yield no cluster."""
        assert cluster(points_around(PORTLAND, 4)) == []

    def test_exactly_min_points_forms_cluster(self) -> None:
        """Test min_points reports, point itself included, are enough."""
        clusters = cluster(points_around(PORTLAND, 5))
        assert len(clusters) == 1
        assert clusters[0].report_count == 5

    def test_every_cluster_meets_min_points(self) -> None:
        """Test no returned cluster is smaller than min_points."""
        rng = random.Random(7)
        reports = [
            make_point(*offset(*PORTLAND, rng.uniform(-150, 150), rng.uniform(-150, 150)))
            for _ in range(60)
        ]
        for found in cluster(reports, eps_km=20.0, min_points=4):
            assert found.report_count >= 4

    def test_outlier_is_excluded(self) -> None:
        """Test a distant report is noise."""
        reports = points_around(PORTLAND, 6) + [make_point(*SEATTLE)]
        clusters = cluster(reports)
        assert len(clusters) == 1
        assert clusters[0].report_count == 6

    def test_clusters_ordered_by_size(self) -> None:
        """Test clusters come largest first with sequential ids."""
        reports = points_around(PORTLAND, 5) + points_around(SEATTLE, 8)
        clusters = cluster(reports)

        assert [c.report_count for c in clusters] == [8, 5]
        assert [c.cluster_id for c in clusters] == [0, 1]
        assert clusters[0].center_lat == pytest.approx(SEATTLE[0], abs=0.01)

    def test_idempotent(self) -> None:
        """Test the same snapshot clusters identically twice."""
        reports = points_around(PORTLAND, 7) + points_around(SEATTLE, 6)
        assert cluster(reports) == cluster(reports)

    def test_input_order_does_not_matter(self) -> None:
        """Test shuffling the snapshot gives the same clusters."""
        reports = points_around(PORTLAND, 7) + points_around(SEATTLE, 6)
        shuffled = list(reports)
        random.Random(3).shuffle(shuffled)
        assert cluster(shuffled) == cluster(reports)

    def test_cluster_across_antimeridian(self) -> None:
        """Test reports either side of 180 degrees cluster together."""
        reports = [make_point(0.0 + i * 0.01, 179.99) for i in range(3)] + [
            make_point(0.0 + i * 0.01, -179.99) for i in range(3)
        ]
        clusters = cluster(reports)

        assert len(clusters) == 1
        assert clusters[0].report_count == 6
        assert abs(clusters[0].center_lng) == pytest.approx(180.0, abs=0.01)
        assert clusters[0].radius_km < 5.0

    def test_cluster_across_antimeridian_away_from_the_line(self) -> None:
        """Test groups tens of km either side of 180 degrees still join up."""
        reports = [make_point(0.0, 179.62) for _ in range(3)] + [
            make_point(0.0, -179.95) for _ in range(3)
        ]
        clusters = cluster(reports, eps_km=50.0, min_points=5)

        assert len(clusters) == 1
        assert clusters[0].report_count == 6

    def test_coincident_reports_are_densest(self) -> None:
        """Test reports sharing one coordinate get the highest density."""
        stacked = cluster([make_point(*PORTLAND) for _ in range(6)])[0]
        spread = cluster(points_around(PORTLAND, 6))[0]

        assert stacked.radius_km == pytest.approx(0.0, abs=1e-6)
        assert stacked.density > spread.density > 0

    def test_old_reports_are_ignored(self) -> None:
        """Test reports outside the recency window do not participate."""
        old_day = TODAY - timedelta(days=400)
        reports = points_around(PORTLAND, 6, day=old_day)
        assert cluster(reports, days_back=365) == []
        assert len(cluster(reports, days_back=500)) == 1

    def test_ungeocoded_and_undated_reports_are_ignored(self) -> None:
        """Test reports missing coordinates or dates are skipped."""
        reports = points_around(PORTLAND, 4) + [
            make_point(lat=None, lng=None),
            make_point(day=None),
        ]
        assert cluster(reports) == []

    def test_invalid_coordinates_are_skipped(self) -> None:
        """Test out-of-range coordinates are dropped rather than failing."""
        reports = points_around(PORTLAND, 6) + [make_point(95.0, 10.0), make_point(10.0, 200.0)]
        clusters = cluster(reports)
        assert len(clusters) == 1
        assert clusters[0].report_count == 6

    def test_empty_snapshot(self) -> None:
        """Test no reports yields no clusters."""
        assert cluster([]) == []


class TestClusterValidation:
    """Tests for parameter validation."""

    @pytest.mark.parametrize("eps_km", [0, -5.0, float("nan"), float("inf")])
    def test_invalid_eps(self, eps_km: float) -> None:
        """Test eps_km must be a positive finite number."""
        with pytest.raises(DetectionValidationError) as exc_info:
            cluster([], eps_km=eps_km)
        assert exc_info.value.parameter == "eps_km"

    @pytest.mark.parametrize("min_points", [0, -1, True, 2.5])
    def test_invalid_min_points(self, min_points) -> None:
        """Test min_points must be a positive integer."""
        with pytest.raises(DetectionValidationError) as exc_info:
            cluster([], min_points=min_points)
        assert exc_info.value.parameter == "min_points"

    def test_invalid_days_back(self) -> None:
        """Test days_back must be a positive integer."""
        with pytest.raises(DetectionValidationError):
            cluster([], days_back=0)


# =============================================================================
# Detector
# =============================================================================


class TestClusterDetector:
    """Tests for ClusterDetector."""

    def test_candidate_from_cluster(self) -> None:
        """Test a cluster becomes a scored geographic candidate."""
        reports = points_around(PORTLAND, 5) + [make_point(*PORTLAND, category="disc")]
        output = ClusterDetector(ClusterDetectorConfig(eps_km=50.0, min_points=5)).detect(
            reports, TODAY
        )

        assert output.detector == "geographic_clusters"
        assert output.skipped_reason is None
        assert len(output.candidates) == 1

        candidate = output.candidates[0]
        assert candidate.pattern_type == "geographic_cluster"
        assert candidate.report_count == 6
        assert 0.0 <= candidate.confidence_score <= 1.0
        assert 0.0 <= candidate.significance_score <= 1.0
        assert all(0.1 <= r <= 1.0 for r in candidate.members.values())
        assert candidate.categories == ["disc", "lights"]
        assert candidate.match_radius_km == 50.0
        assert isinstance(candidate.metadata, GeographicClusterMetadata)
        assert candidate.metadata_dict()["kind"] == "geographic_cluster"

    def test_member_at_centre_is_most_relevant(self) -> None:
        """Test relevance falls with distance from the centre."""
        centre = make_point(*PORTLAND)
        reports = points_around(PORTLAND, 5) + [centre]
        candidate = ClusterDetector().detect(reports, TODAY).candidates[0]
        assert candidate.members[centre.report_id] == max(candidate.members.values())

    def test_no_clusters_no_candidates(self) -> None:
        """Test sparse data yields an empty, non-skipped output."""
        output = ClusterDetector().detect(points_around(PORTLAND, 3), TODAY)
        assert output.candidates == []
        assert output.skipped_reason is None
