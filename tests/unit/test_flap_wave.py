"""Unit tests for flap wave detection."""

from datetime import timedelta

import pytest

from factories import PORTLAND, TODAY, make_point, offset
from patternlens.core.exceptions import DetectionValidationError
from patternlens.detection.flap_wave import (
    FlapWaveDetector,
    FlapWaveDetectorConfig,
    detect_flap_waves,
)
from patternlens.detection.metadata import FlapWaveMetadata

START = TODAY - timedelta(days=20)


def moving_reports(days: int = 10, km_per_day: float = 15.0, per_day: int = 2):
    """Reports drifting east from Portland, ``per_day`` on each day."""
    reports = []
    for day in range(days):
        for k in range(per_day):
            lat, lng = offset(*PORTLAND, north_km=k * 1.0, east_km=km_per_day * day)
            reports.append(make_point(lat, lng, day=START + timedelta(days=day)))
    return reports


def detect(reports, **overrides):
    params = {
        "eps_km": 100.0,
        "window_days": 7,
        "min_points": 5,
        "days_back": 90,
        "today": TODAY,
    }
    params.update(overrides)
    return detect_flap_waves(reports, **params)


class TestDetectFlapWaves:
    """Tests for detect_flap_waves."""

    def test_moving_cluster_is_a_wave(self) -> None:
        """Test a chain of reports drifting 15 km a day is one wave."""
        reports = moving_reports()
        waves = detect(reports)

        assert len(waves) == 1
        wave = waves[0]
        assert len(wave.members) == 20
        assert wave.first_date == START
        assert wave.last_date == START + timedelta(days=9)
        assert wave.duration_days == 9
        # Earlier half averages day 2, later half day 7
        assert wave.spread_km == pytest.approx(75.0, rel=0.02)
        assert wave.speed_km_per_day == pytest.approx(wave.spread_km / 9)
        assert wave.front[1] > wave.origin[1]

    def test_members_ordered_by_date(self) -> None:
        """Test wave members are in chronological order."""
        wave = detect(moving_reports())[0]
        dates = [m.event_date for m in wave.members]
        assert dates == sorted(dates)

    def test_stationary_cluster_is_not_a_wave(self) -> None:
        """Test reports that stay put over many days do not spread."""
        assert detect(moving_reports(km_per_day=0.0)) == []

    def test_short_burst_is_not_a_wave(self) -> None:
        """Test a cluster lasting less than min_duration_days is ignored."""
        reports = moving_reports(days=3, per_day=4, km_per_day=20.0)
        assert detect(reports, min_duration_days=3) == []
        assert len(detect(reports, min_duration_days=2)) == 1

    def test_reports_far_apart_in_time_are_not_neighbours(self) -> None:
        """Test groups separated by more than window_days do not chain."""
        early = [make_point(*PORTLAND, day=START) for _ in range(3)]
        late_lat, late_lng = offset(*PORTLAND, east_km=60.0)
        late = [make_point(late_lat, late_lng, day=START + timedelta(days=15)) for _ in range(3)]
        assert detect(early + late, min_points=5) == []

    def test_old_reports_are_ignored(self) -> None:
        """Test reports outside days_back do not participate."""
        assert detect(moving_reports(), days_back=5) == []

    def test_invalid_parameters(self) -> None:
        """Test malformed parameters are rejected."""
        with pytest.raises(DetectionValidationError):
            detect([], eps_km=-1.0)
        with pytest.raises(DetectionValidationError):
            detect([], window_days=0)


class TestFlapWaveDetector:
    """Tests for FlapWaveDetector."""

    def test_wave_becomes_candidate(self) -> None:
        """Test a wave becomes a flap_wave candidate with travel statistics."""
        output = FlapWaveDetector(FlapWaveDetectorConfig()).detect(moving_reports(), TODAY)

        assert output.detector == "flap_wave"
        assert len(output.candidates) == 1
        candidate = output.candidates[0]
        assert candidate.pattern_type == "flap_wave"
        assert candidate.report_count == 20
        assert candidate.has_center
        assert candidate.match_radius_km == 100.0
        assert 0.0 <= candidate.confidence_score <= 1.0
        assert 0.0 <= candidate.significance_score <= 1.0
        assert isinstance(candidate.metadata, FlapWaveMetadata)
        assert candidate.metadata.duration_days == 9
        assert candidate.metadata.window_days == 7
        assert candidate.metadata.spread_km >= 25.0

    def test_no_wave_no_candidates(self) -> None:
        """Test stationary data yields no candidates."""
        output = FlapWaveDetector().detect(moving_reports(km_per_day=0.0), TODAY)
        assert output.candidates == []
