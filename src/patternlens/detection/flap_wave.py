"""Flap wave detection: report clusters that travel across a region.

A flap wave is found with a spatiotemporal DBSCAN. Two reports are
neighbours when they are within ``eps_km`` of each other and their event
dates are at most ``window_days`` apart, so a chain of reports can drift
across the map while staying density-connected in time. A cluster counts
as a wave when it lasts at least ``min_duration_days`` and the centroid of
its later half has moved at least ``min_spread_km`` away from the centroid
of its earlier half.
"""

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta

from pydantic import BaseModel, Field

from patternlens.core.logging import get_logger
from patternlens.detection.clustering import (
    GridIndex,
    dbscan,
    select_geocoded,
    validate_positive_int,
    validate_radius,
)
from patternlens.detection.metadata import FlapWaveMetadata
from patternlens.detection.scoring import spatial_relevance, wave_confidence, wave_significance
from patternlens.detection.types import DetectorOutput, PatternCandidate, ReportPoint
from patternlens.utils.geo import centroid, haversine_km

logger = get_logger(__name__)


@dataclass(frozen=True)
class FlapWave:
    """A spatiotemporal cluster whose centre of mass moved over time."""

    members: tuple[ReportPoint, ...]
    center_lat: float
    center_lng: float
    radius_km: float
    origin: tuple[float, float]
    front: tuple[float, float]
    spread_km: float
    first_date: date
    last_date: date

    @property
    def duration_days(self) -> int:
        return (self.last_date - self.first_date).days

    @property
    def speed_km_per_day(self) -> float:
        return self.spread_km / max(self.duration_days, 1)


def spatiotemporal_neighbors(
    reports: Sequence[ReportPoint],
    eps_km: float,
    window_days: int,
) -> Callable[[int], list[int]]:
    points = [(r.latitude, r.longitude) for r in reports]
    index = GridIndex(points, eps_km)  # type: ignore[arg-type]

    def neighbors(i: int) -> list[int]:
        lat, lng = points[i]
        day = reports[i].event_date
        return [
            j
            for j in index.candidates(lat, lng, eps_km)  # type: ignore[arg-type]
            if abs((reports[j].event_date - day).days) <= window_days  # type: ignore[operator]
            and haversine_km(lat, lng, points[j][0], points[j][1]) <= eps_km  # type: ignore[arg-type]
        ]

    return neighbors


def _as_wave(
    members: list[ReportPoint],
    min_duration_days: int,
    min_spread_km: float,
) -> FlapWave | None:
    ordered = sorted(members, key=lambda r: (r.event_date, str(r.report_id)))
    first, last = ordered[0].event_date, ordered[-1].event_date
    if (last - first).days < min_duration_days:  # type: ignore[operator]
        return None

    mid = len(ordered) // 2
    origin = centroid([(r.latitude, r.longitude) for r in ordered[:mid]])  # type: ignore[misc]
    front = centroid([(r.latitude, r.longitude) for r in ordered[mid:]])  # type: ignore[misc]
    spread = haversine_km(origin[0], origin[1], front[0], front[1])
    if spread < min_spread_km:
        return None

    coords = [(r.latitude, r.longitude) for r in ordered]
    center_lat, center_lng = centroid(coords)  # type: ignore[arg-type]
    radius = max(haversine_km(center_lat, center_lng, lat, lng) for lat, lng in coords)  # type: ignore[arg-type]
    return FlapWave(
        members=tuple(ordered),
        center_lat=center_lat,
        center_lng=center_lng,
        radius_km=radius,
        origin=origin,
        front=front,
        spread_km=spread,
        first_date=first,  # type: ignore[arg-type]
        last_date=last,  # type: ignore[arg-type]
    )


def detect_flap_waves(
    reports: Iterable[ReportPoint],
    eps_km: float,
    window_days: int,
    min_points: int,
    days_back: int,
    today: date,
    min_duration_days: int = 3,
    min_spread_km: float = 25.0,
) -> list[FlapWave]:
    """Find moving clusters among recent geocoded reports.

    Returns:
        Waves ordered by descending member count

    Raises:
        DetectionValidationError: If a parameter is malformed
    """
    validate_radius("eps_km", eps_km)
    validate_positive_int("window_days", window_days)
    validate_positive_int("min_points", min_points)
    validate_positive_int("days_back", days_back)

    selected = select_geocoded(reports, today - timedelta(days=days_back), today)
    if not selected:
        return []

    raw = dbscan(
        len(selected), spatiotemporal_neighbors(selected, eps_km, window_days), min_points
    )

    waves = []
    for indices in raw:
        if len(indices) < min_points:
            continue
        wave = _as_wave([selected[i] for i in indices], min_duration_days, min_spread_km)
        if wave is not None:
            waves.append(wave)

    waves.sort(key=lambda w: (-len(w.members), w.first_date))
    return waves


class FlapWaveDetectorConfig(BaseModel):
    """Configuration for the flap wave detector."""

    eps_km: float = Field(default=100.0, gt=0)
    window_days: int = Field(default=7, ge=1)
    min_points: int = Field(default=5, ge=1)
    days_back: int = Field(default=90, ge=1)
    min_duration_days: int = Field(default=3, ge=0)
    min_spread_km: float = Field(default=25.0, ge=0)


class FlapWaveDetector:
    """Turns flap waves into pattern candidates."""

    name = "flap_wave"
    pattern_type = "flap_wave"

    def __init__(self, config: FlapWaveDetectorConfig | None = None) -> None:
        self.config = config or FlapWaveDetectorConfig()

    def detect(self, reports: Sequence[ReportPoint], today: date) -> DetectorOutput:
        started = time.perf_counter()
        waves = detect_flap_waves(
            reports,
            eps_km=self.config.eps_km,
            window_days=self.config.window_days,
            min_points=self.config.min_points,
            days_back=self.config.days_back,
            today=today,
            min_duration_days=self.config.min_duration_days,
            min_spread_km=self.config.min_spread_km,
        )
        logger.info("Flap wave detection complete", waves=len(waves))
        return DetectorOutput(
            detector=self.name,
            pattern_type=self.pattern_type,
            candidates=[self._to_candidate(w) for w in waves],
            duration_ms=(time.perf_counter() - started) * 1000,
        )

    def _to_candidate(self, wave: FlapWave) -> PatternCandidate:
        members = {
            r.report_id: spatial_relevance(
                haversine_km(wave.center_lat, wave.center_lng, r.latitude, r.longitude),  # type: ignore[arg-type]
                wave.radius_km,
            )
            for r in wave.members
        }
        return PatternCandidate(
            pattern_type=self.pattern_type,
            confidence_score=wave_confidence(len(wave.members), wave.spread_km),
            significance_score=wave_significance(len(wave.members), wave.spread_km),
            members=members,
            metadata=FlapWaveMetadata(
                origin_lat=wave.origin[0],
                origin_lng=wave.origin[1],
                front_lat=wave.front[0],
                front_lng=wave.front[1],
                spread_km=wave.spread_km,
                speed_km_per_day=wave.speed_km_per_day,
                duration_days=wave.duration_days,
                window_days=self.config.window_days,
                first_date=wave.first_date,
                last_date=wave.last_date,
            ),
            categories=sorted({r.category for r in wave.members}),
            center_lat=wave.center_lat,
            center_lng=wave.center_lng,
            radius_km=wave.radius_km,
            match_radius_km=self.config.eps_km,
            start_date=wave.first_date,
            end_date=wave.last_date,
        )


def create_flap_wave_detector(
    config: FlapWaveDetectorConfig | None = None,
) -> FlapWaveDetector:
    """Create a flap wave detector."""
    return FlapWaveDetector(config=config)
