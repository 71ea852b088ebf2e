"""Unit tests for great-circle geometry helpers.

Tests cover:
- Haversine distances, including across the antimeridian
- Longitude normalisation
- Bounding boxes (wrapping and polar)
- Centroids of points straddling the antimeridian
- Minimum enclosing circle radius
"""

import math

import pytest

from patternlens.utils.geo import (
    EARTH_RADIUS_KM,
    bounding_box,
    centroid,
    circle_area_km2,
    haversine_km,
    minimum_enclosing_radius_km,
    normalize_lng,
)

KM_PER_DEGREE_ARC = EARTH_RADIUS_KM * math.pi / 180


class TestHaversine:
    """Tests for haversine_km."""

    def test_same_point_is_zero(self) -> None:
        """Test distance from a point to itself."""
        assert haversine_km(45.52, -122.68, 45.52, -122.68) == 0.0

    def test_one_degree_of_latitude(self) -> None:
        """Test one degree along a meridian."""
        assert haversine_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(KM_PER_DEGREE_ARC, rel=1e-9)

    def test_symmetric(self) -> None:
        """Test distance does not depend on argument order."""
        a = haversine_km(45.52, -122.68, 47.61, -122.33)
        b = haversine_km(47.61, -122.33, 45.52, -122.68)
        assert a == pytest.approx(b)

    def test_across_antimeridian(self) -> None:
        """Test points either side of 180 degrees are close, not half a world apart."""
        distance = haversine_km(0.0, 179.9, 0.0, -179.9)
        assert distance == pytest.approx(0.2 * KM_PER_DEGREE_ARC, rel=1e-6)

    def test_antipodal_points(self) -> None:
        """Test antipodal points give half the circumference."""
        assert haversine_km(0.0, 0.0, 0.0, 180.0) == pytest.approx(math.pi * EARTH_RADIUS_KM)


class TestNormalizeLng:
    """Tests for normalize_lng."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(0.0, 0.0), (190.0, -170.0), (-190.0, 170.0), (180.0, -180.0), (540.0, -180.0)],
    )
    def test_wraps_into_range(self, value: float, expected: float) -> None:
        """Test longitudes wrap into [-180, 180)."""
        assert normalize_lng(value) == pytest.approx(expected)


class TestBoundingBox:
    """Tests for bounding_box."""

    def test_contains_points_within_radius(self) -> None:
        """Test a point 40 km north is inside a 50 km box."""
        box = bounding_box(45.52, -122.68, 50.0)
        assert box.contains(45.52 + 40 / 111.32, -122.68)
        assert not box.wraps_antimeridian

    def test_excludes_distant_points(self) -> None:
        """Test a point 2 degrees away is outside a 50 km box."""
        box = bounding_box(45.52, -122.68, 50.0)
        assert not box.contains(47.52, -122.68)

    def test_wraps_antimeridian(self) -> None:
        """Test a box around 179.9 includes points just west of -180."""
        box = bounding_box(0.0, 179.9, 50.0)
        assert box.wraps_antimeridian
        assert box.contains(0.0, -179.9)
        assert box.contains(0.0, 179.95)
        assert not box.contains(0.0, 0.0)

    def test_polar_box_spans_all_longitudes(self) -> None:
        """Test a box touching the pole covers every longitude."""
        box = bounding_box(89.9, 10.0, 50.0)
        assert box.min_lng == -180.0
        assert box.max_lng == 180.0
        assert box.contains(89.95, -170.0)


class TestCentroid:
    """Tests for centroid."""

    def test_mean_of_points(self) -> None:
        """Test centroid of simple points."""
        lat, lng = centroid([(10.0, 20.0), (20.0, 40.0)])
        assert lat == pytest.approx(15.0)
        assert lng == pytest.approx(30.0)

    def test_straddling_antimeridian(self) -> None:
        """Test points either side of 180 average to 180, not 0."""
        lat, lng = centroid([(0.0, 179.0), (0.0, -179.0)])
        assert lat == pytest.approx(0.0)
        assert abs(lng) == pytest.approx(180.0)

    def test_empty_raises(self) -> None:
        """Test centroid of nothing is an error."""
        with pytest.raises(ValueError):
            centroid([])


class TestMinimumEnclosingRadius:
    """Tests for minimum_enclosing_radius_km."""

    def test_single_point(self) -> None:
        """Test one point (or duplicates) has zero radius."""
        assert minimum_enclosing_radius_km([(45.0, -122.0)]) == 0.0
        assert minimum_enclosing_radius_km([(45.0, -122.0), (45.0, -122.0)]) == 0.0

    def test_two_points(self) -> None:
        """Test two points give half their separation."""
        points = [(0.0, 0.0), (0.0, 10 / 111.32)]
        assert minimum_enclosing_radius_km(points) == pytest.approx(5.0, rel=1e-3)

    def test_collinear_points(self) -> None:
        """Test collinear points are spanned by the outermost pair."""
        points = [(0.0, 0.0), (0.0, 5 / 111.32), (0.0, 10 / 111.32)]
        assert minimum_enclosing_radius_km(points) == pytest.approx(5.0, rel=1e-3)

    def test_encloses_every_point(self) -> None:
        """Test a square is enclosed by the circle on its diagonal."""
        points = [(0.0, 0.0), (0.05, 0.0), (0.0, 0.05), (0.05, 0.05), (0.025, 0.025)]
        radius = minimum_enclosing_radius_km(points)
        diagonal = haversine_km(0.0, 0.0, 0.05, 0.05)
        assert radius == pytest.approx(diagonal / 2, rel=1e-2)

    def test_deterministic(self) -> None:
        """Test repeated calls agree exactly."""
        points = [(45.0 + i * 0.01, -122.0 + (i % 3) * 0.02) for i in range(20)]
        assert minimum_enclosing_radius_km(points) == minimum_enclosing_radius_km(points)


def test_circle_area() -> None:
    """Test the circle area helper."""
    assert circle_area_km2(1.0) == pytest.approx(math.pi)
    assert circle_area_km2(0.0) == 0.0
