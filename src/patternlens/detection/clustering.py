"""Density-based geographic clustering of reports.

This module provides:
1. A uniform latitude/longitude grid index for radius queries
2. A DBSCAN pass parameterised by a neighbour function
3. The geographic cluster detector built on both

DBSCAN follows the ST_ClusterDBSCAN convention: a point is a core point when
at least ``min_points`` points, itself included, lie within ``eps_km``.
Clusters are the density-connected sets of core points plus the border
points they reach first; everything else is noise.
"""

import math
import time
from collections import deque
from collections.abc import Callable, Iterable, Sequence
from datetime import date, timedelta

from pydantic import BaseModel, Field

from patternlens.core.exceptions import DetectionValidationError
from patternlens.core.logging import get_logger
from patternlens.detection.metadata import GeographicClusterMetadata
from patternlens.detection.scoring import (
    cluster_confidence,
    cluster_significance,
    spatial_relevance,
)
from patternlens.detection.types import (
    DetectorOutput,
    GeographicCluster,
    PatternCandidate,
    ReportPoint,
)
from patternlens.utils.geo import (
    KM_PER_DEGREE_LAT,
    centroid,
    circle_area_km2,
    haversine_km,
    minimum_enclosing_radius_km,
)

logger = get_logger(__name__)

NOISE = -1
UNVISITED = -2

# Lower bound on the enclosing circle; coincident reports get a finite, high density
MIN_CLUSTER_AREA_KM2 = 0.01


# =============================================================================
# Validation
# =============================================================================


def validate_radius(name: str, value: float) -> None:
    if not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
        raise DetectionValidationError(name, value, "must be a positive finite number of km")


def validate_positive_int(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise DetectionValidationError(name, value, "must be a positive integer")


def is_valid_coordinate(lat: float, lng: float) -> bool:
    return (
        math.isfinite(lat)
        and math.isfinite(lng)
        and -90.0 <= lat <= 90.0
        and -180.0 <= lng <= 180.0
    )


def select_geocoded(
    reports: Iterable[ReportPoint],
    since: date,
    until: date,
) -> list[ReportPoint]:
    """Geocoded reports dated within [since, until], in report-id order.

    Rows with out-of-range coordinates are data-quality problems in the
    store; they are skipped rather than failing the detector.
    """
    selected = []
    rejected = 0
    for report in reports:
        if not report.is_geocoded or report.event_date is None:
            continue
        if not since <= report.event_date <= until:
            continue
        if not is_valid_coordinate(report.latitude, report.longitude):  # type: ignore[arg-type]
            rejected += 1
            continue
        selected.append(report)

    if rejected:
        logger.warning("Skipped reports with invalid coordinates", count=rejected)

    selected.sort(key=lambda r: str(r.report_id))
    return selected


# =============================================================================
# Spatial index
# =============================================================================


class GridIndex:
    """Uniform grid over latitude/longitude for radius candidate lookup.

    Cells are ``cell_km`` tall. Longitude cells are about as wide in degrees,
    rounded so a whole number of columns spans 360 degrees, and wrap around
    the antimeridian. Lookups return a superset of the points within the
    radius, to be filtered by exact distance.
    """

    def __init__(self, points: Sequence[tuple[float, float]], cell_km: float):
        self.cell_deg = cell_km / KM_PER_DEGREE_LAT
        self.lng_cells = max(1, math.ceil(360.0 / self.cell_deg))
        self.lng_cell_deg = 360.0 / self.lng_cells
        self._rows: dict[int, dict[int, list[int]]] = {}
        for idx, (lat, lng) in enumerate(points):
            row, col = self._cell(lat, lng)
            self._rows.setdefault(row, {}).setdefault(col, []).append(idx)

    def _cell(self, lat: float, lng: float) -> tuple[int, int]:
        row = math.floor((lat + 90.0) / self.cell_deg)
        col = math.floor((lng + 180.0) / self.lng_cell_deg) % self.lng_cells
        return row, col

    def candidates(self, lat: float, lng: float, radius_km: float) -> list[int]:
        d_lat = radius_km / KM_PER_DEGREE_LAT
        min_lat = max(-90.0, lat - d_lat)
        max_lat = min(90.0, lat + d_lat)
        row_lo = math.floor((min_lat + 90.0) / self.cell_deg)
        row_hi = math.floor((max_lat + 90.0) / self.cell_deg)

        cos_lat = math.cos(math.radians(max(abs(min_lat), abs(max_lat))))
        full_width = cos_lat < 1e-9
        if not full_width:
            d_lng = radius_km / (KM_PER_DEGREE_LAT * cos_lat)
            full_width = d_lng >= 180.0

        found: list[int] = []
        for row in range(row_lo, row_hi + 1):
            cols = self._rows.get(row)
            if not cols:
                continue
            if full_width:
                for members in cols.values():
                    found.extend(members)
                continue
            col_lo = math.floor((lng - d_lng + 180.0) / self.lng_cell_deg)
            col_hi = math.floor((lng + d_lng + 180.0) / self.lng_cell_deg)
            wanted = {c % self.lng_cells for c in range(col_lo, col_hi + 1)}
            for col in wanted:
                found.extend(cols.get(col, ()))
        return found


# =============================================================================
# DBSCAN
# =============================================================================


def dbscan(
    size: int,
    neighbors: Callable[[int], list[int]],
    min_points: int,
) -> list[list[int]]:
    """Cluster ``size`` points given a neighbour function.

    ``neighbors(i)`` must include ``i`` itself. Points are visited in index
    order, so a fixed input order yields identical clusters.

    Returns:
        Clusters as lists of point indices, in discovery order
    """
    labels = [UNVISITED] * size
    clusters: list[list[int]] = []

    for i in range(size):
        if labels[i] != UNVISITED:
            continue
        seeds = neighbors(i)
        if len(seeds) < min_points:
            labels[i] = NOISE
            continue

        cluster_id = len(clusters)
        labels[i] = cluster_id
        members = [i]
        queue = deque(seeds)
        while queue:
            j = queue.popleft()
            if labels[j] == NOISE:
                # Border point previously written off as noise
                labels[j] = cluster_id
                members.append(j)
                continue
            if labels[j] != UNVISITED:
                continue
            labels[j] = cluster_id
            members.append(j)
            expansion = neighbors(j)
            if len(expansion) >= min_points:
                queue.extend(expansion)
        clusters.append(members)

    return clusters


def spatial_neighbors(
    points: Sequence[tuple[float, float]],
    eps_km: float,
) -> Callable[[int], list[int]]:
    """Neighbour function over great-circle distance, backed by a grid."""
    index = GridIndex(points, eps_km)

    def neighbors(i: int) -> list[int]:
        lat, lng = points[i]
        return [
            j
            for j in index.candidates(lat, lng, eps_km)
            if haversine_km(lat, lng, points[j][0], points[j][1]) <= eps_km
        ]

    return neighbors


def build_cluster(cluster_id: int, members: Sequence[ReportPoint]) -> GeographicCluster:
    """Summarise a set of geocoded reports as a GeographicCluster."""
    coords = [(m.latitude, m.longitude) for m in members]
    center_lat, center_lng = centroid(coords)  # type: ignore[arg-type]
    radius_km = max(haversine_km(center_lat, center_lng, lat, lng) for lat, lng in coords)  # type: ignore[arg-type]

    mbc_radius = minimum_enclosing_radius_km(coords)  # type: ignore[arg-type]
    area = max(circle_area_km2(mbc_radius), MIN_CLUSTER_AREA_KM2)
    density = len(members) / area

    dates = [m.event_date for m in members if m.event_date is not None]
    return GeographicCluster(
        cluster_id=cluster_id,
        report_ids=tuple(sorted((m.report_id for m in members), key=str)),
        center_lat=center_lat,
        center_lng=center_lng,
        report_count=len(members),
        density=density,
        radius_km=radius_km,
        categories=tuple(sorted({m.category for m in members})),
        first_date=min(dates) if dates else None,
        last_date=max(dates) if dates else None,
    )


def detect_geographic_clusters(
    reports: Iterable[ReportPoint],
    eps_km: float,
    min_points: int,
    days_back: int,
    today: date,
) -> list[GeographicCluster]:
    """Find density-based clusters among recent geocoded reports.

    Args:
        reports: Approved reports (ungeocoded or undated ones are ignored)
        eps_km: Neighbourhood radius in kilometres
        min_points: Minimum neighbourhood size, point included
        days_back: Only reports dated within this many days participate
        today: Reference date for the recency window

    Returns:
        Clusters ordered by descending report count

    Raises:
        DetectionValidationError: If a parameter is malformed
    """
    validate_radius("eps_km", eps_km)
    validate_positive_int("min_points", min_points)
    validate_positive_int("days_back", days_back)

    selected = select_geocoded(reports, today - timedelta(days=days_back), today)
    if not selected:
        return []

    points = [(r.latitude, r.longitude) for r in selected]
    raw = dbscan(len(selected), spatial_neighbors(points, eps_km), min_points)  # type: ignore[arg-type]

    clusters = [
        build_cluster(0, [selected[i] for i in members])
        for members in raw
        if len(members) >= min_points
    ]
    clusters.sort(key=lambda c: (-c.report_count, str(c.report_ids[0])))

    return [
        GeographicCluster(**{**c.__dict__, "cluster_id": position})
        for position, c in enumerate(clusters)
    ]


# =============================================================================
# Detector
# =============================================================================


class ClusterDetectorConfig(BaseModel):
    """Configuration for the geographic cluster detector."""

    eps_km: float = Field(default=50.0, gt=0)
    min_points: int = Field(default=5, ge=1)
    days_back: int = Field(default=365, ge=1)


class ClusterDetector:
    """Turns geographic clusters into pattern candidates."""

    name = "geographic_clusters"
    pattern_type = "geographic_cluster"

    def __init__(self, config: ClusterDetectorConfig | None = None) -> None:
        self.config = config or ClusterDetectorConfig()

    def detect(self, reports: Sequence[ReportPoint], today: date) -> DetectorOutput:
        started = time.perf_counter()
        clusters = detect_geographic_clusters(
            reports,
            eps_km=self.config.eps_km,
            min_points=self.config.min_points,
            days_back=self.config.days_back,
            today=today,
        )

        by_id = {r.report_id: r for r in reports}
        candidates = [self._to_candidate(c, by_id) for c in clusters]

        logger.info(
            "Geographic clustering complete",
            clusters=len(clusters),
            eps_km=self.config.eps_km,
            min_points=self.config.min_points,
        )
        return DetectorOutput(
            detector=self.name,
            pattern_type=self.pattern_type,
            candidates=candidates,
            duration_ms=(time.perf_counter() - started) * 1000,
        )

    def _to_candidate(
        self,
        cluster: GeographicCluster,
        by_id: dict,
    ) -> PatternCandidate:
        members = {}
        for report_id in cluster.report_ids:
            report = by_id[report_id]
            distance = haversine_km(
                cluster.center_lat, cluster.center_lng, report.latitude, report.longitude
            )
            members[report_id] = spatial_relevance(distance, cluster.radius_km)

        return PatternCandidate(
            pattern_type=self.pattern_type,
            confidence_score=cluster_confidence(cluster.report_count, cluster.density),
            significance_score=cluster_significance(
                cluster.report_count, len(cluster.categories)
            ),
            members=members,
            metadata=GeographicClusterMetadata(
                density=cluster.density,
                eps_km=self.config.eps_km,
                min_points=self.config.min_points,
                first_date=cluster.first_date,
                last_date=cluster.last_date,
            ),
            categories=list(cluster.categories),
            center_lat=cluster.center_lat,
            center_lng=cluster.center_lng,
            radius_km=cluster.radius_km,
            match_radius_km=self.config.eps_km,
            start_date=cluster.first_date,
            end_date=cluster.last_date,
        )


def create_cluster_detector(config: ClusterDetectorConfig | None = None) -> ClusterDetector:
    """Create a geographic cluster detector."""
    return ClusterDetector(config=config)
