"""Unit tests for detector scoring and typed pattern metadata."""

from datetime import date

import pytest
from pydantic import ValidationError

from patternlens.detection.metadata import (
    GenericPatternMetadata,
    GeographicClusterMetadata,
    SeasonalPatternMetadata,
    TemporalAnomalyMetadata,
    dump_metadata,
    parse_metadata,
)
from patternlens.detection.scoring import (
    cluster_confidence,
    cluster_significance,
    seasonal_significance,
    spatial_relevance,
    temporal_confidence,
    temporal_significance,
    wave_confidence,
    wave_significance,
)

# =============================================================================
# Scoring
# =============================================================================


class TestScoreBounds:
    """Every score stays in [0, 1] however extreme the input."""

    @pytest.mark.parametrize("count", [0, 1, 5, 1_000_000])
    @pytest.mark.parametrize("extent", [0.0, 3.5, 1e9])
    def test_two_factor_scores(self, count: int, extent: float) -> None:
        """Test count and extent based scores."""
        for score in (
            cluster_confidence(count, extent),
            cluster_significance(count, int(min(extent, 100))),
            wave_confidence(count, extent),
            wave_significance(count, extent),
            temporal_significance(count, extent),
            temporal_significance(count, -extent),
        ):
            assert 0.0 <= score <= 1.0

    @pytest.mark.parametrize("z", [-100.0, -2.5, 0.0, 2.5, 100.0])
    def test_temporal_confidence(self, z: float) -> None:
        """Test confidence depends on the magnitude of z only."""
        assert 0.0 <= temporal_confidence(z) <= 1.0
        assert temporal_confidence(z) == temporal_confidence(-z)

    @pytest.mark.parametrize("index", [0.0, 0.5, 1.0, 6.0, 100.0])
    def test_seasonal_significance(self, index: float) -> None:
        """Test seasonal significance grows with distance from 1."""
        assert 0.0 <= seasonal_significance(index) <= 1.0

    def test_neutral_month_is_insignificant(self) -> None:
        """Test an index of exactly 1 scores 0."""
        assert seasonal_significance(1.0) == 0.0

    def test_larger_clusters_are_more_confident(self) -> None:
        """Test confidence is monotonic in report count."""
        assert cluster_confidence(10, 1.0) > cluster_confidence(5, 1.0)


class TestSpatialRelevance:
    """Tests for spatial_relevance."""

    def test_centre_is_fully_relevant(self) -> None:
        """Test a member at the centre scores 1."""
        assert spatial_relevance(0.0, 10.0) == 1.0

    def test_edge_has_floor(self) -> None:
        """Test members at or beyond the radius keep a minimum relevance."""
        assert spatial_relevance(10.0, 10.0) == pytest.approx(0.1)
        assert spatial_relevance(50.0, 10.0) == pytest.approx(0.1)

    def test_halfway(self) -> None:
        """Test relevance falls linearly with distance."""
        assert spatial_relevance(5.0, 10.0) == pytest.approx(0.5)

    def test_zero_radius(self) -> None:
        """Test a single-point pattern is fully relevant."""
        assert spatial_relevance(0.0, 0.0) == 1.0


# =============================================================================
# Metadata
# =============================================================================


class TestPatternMetadata:
    """Tests for the discriminated metadata union."""

    def test_parse_fills_kind_from_pattern_type(self) -> None:
        """Test payloads without kind are typed by the pattern type."""
        metadata = parse_metadata(
            "geographic_cluster", {"density": 1.2, "eps_km": 50.0, "min_points": 5}
        )
        assert isinstance(metadata, GeographicClusterMetadata)
        assert metadata.kind == "geographic_cluster"

    def test_parse_temporal(self) -> None:
        """Test temporal metadata parses dates from JSON strings."""
        metadata = parse_metadata(
            "temporal_anomaly",
            {
                "kind": "temporal_anomaly",
                "z_score": 3.1,
                "is_spike": True,
                "mean_baseline": 10.0,
                "std_deviation": 2.0,
                "week_start": "2026-06-08",
            },
        )
        assert isinstance(metadata, TemporalAnomalyMetadata)
        assert metadata.week_start == date(2026, 6, 8)

    def test_kind_must_match_pattern_type(self) -> None:
        """Test a payload for one type cannot be stored under another."""
        with pytest.raises(ValueError, match="does not match"):
            parse_metadata("seasonal_pattern", {"kind": "temporal_anomaly"})

    def test_missing_fields_rejected(self) -> None:
        """Test required statistics must be present."""
        with pytest.raises(ValidationError):
            parse_metadata("seasonal_pattern", {"month": 7})

    def test_unknown_fields_rejected(self) -> None:
        """Test variants do not accept fields of other variants."""
        with pytest.raises(ValidationError):
            parse_metadata(
                "geographic_cluster",
                {"density": 1.0, "eps_km": 50.0, "min_points": 5, "z_score": 2.0},
            )

    def test_generic_types_keep_attributes(self) -> None:
        """Test types without a dedicated detector store free-form attributes."""
        metadata = parse_metadata("date_correlation", {"attributes": {"date": "07-04"}})
        assert isinstance(metadata, GenericPatternMetadata)
        assert metadata.attributes == {"date": "07-04"}

    def test_dump_is_json_safe(self) -> None:
        """Test dumps carry the kind and ISO dates."""
        metadata = SeasonalPatternMetadata(
            month=7, month_name="July", seasonal_index=2.4, is_peak=True, years_back=3
        )
        dumped = dump_metadata(metadata)
        assert dumped["kind"] == "seasonal_pattern"
        assert parse_metadata("seasonal_pattern", dumped) == metadata

    def test_month_range_enforced(self) -> None:
        """Test month must be 1..12."""
        with pytest.raises(ValidationError):
            SeasonalPatternMetadata(
                month=13, month_name="?", seasonal_index=1.0, is_peak=False, years_back=3
            )
