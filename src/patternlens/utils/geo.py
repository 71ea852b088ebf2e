"""Great-circle geometry helpers.

All distances are in kilometres on a spherical Earth. Latitudes and
longitudes are decimal degrees.
"""

import math
import random
from collections.abc import Sequence
from dataclasses import dataclass

EARTH_RADIUS_KM = 6371.0088
KM_PER_DEGREE_LAT = 111.32


@dataclass(frozen=True)
class BoundingBox:
    """Latitude/longitude box used to pre-filter spatial queries."""

    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float
    wraps_antimeridian: bool = False

    def contains(self, lat: float, lng: float) -> bool:
        if not self.min_lat <= lat <= self.max_lat:
            return False
        if self.wraps_antimeridian:
            return lng >= self.min_lng or lng <= self.max_lng
        return self.min_lng <= lng <= self.max_lng


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = phi2 - phi1
    d_lambda = math.radians(lng2 - lng1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # Rounding can push a marginally past 1 for antipodal points
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def normalize_lng(lng: float) -> float:
    """Wrap a longitude into [-180, 180)."""
    return ((lng + 180.0) % 360.0) - 180.0


def bounding_box(lat: float, lng: float, radius_km: float) -> BoundingBox:
    """Box that fully contains the circle of ``radius_km`` around a point."""
    d_lat = radius_km / KM_PER_DEGREE_LAT
    min_lat = max(-90.0, lat - d_lat)
    max_lat = min(90.0, lat + d_lat)

    cos_lat = math.cos(math.radians(max(abs(min_lat), abs(max_lat))))
    if cos_lat < 1e-9 or max_lat >= 90.0 or min_lat <= -90.0:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)

    d_lng = radius_km / (KM_PER_DEGREE_LAT * cos_lat)
    if d_lng >= 180.0:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)

    min_lng = normalize_lng(lng - d_lng)
    max_lng = normalize_lng(lng + d_lng)
    return BoundingBox(min_lat, max_lat, min_lng, max_lng, wraps_antimeridian=min_lng > max_lng)


def centroid(points: Sequence[tuple[float, float]]) -> tuple[float, float]:
    """Arithmetic mean of latitudes and longitudes.

    Matches the planar centroid PostGIS computes on geometry casts. Clusters
    straddling the antimeridian are averaged on an unwrapped longitude axis.
    """
    if not points:
        raise ValueError("centroid of an empty point set")

    lat = sum(p[0] for p in points) / len(points)
    lngs = [p[1] for p in points]
    if max(lngs) - min(lngs) > 180.0:
        lngs = [x + 360.0 if x < 0 else x for x in lngs]
    lng = normalize_lng(sum(lngs) / len(lngs))
    return lat, lng


def project_local(
    points: Sequence[tuple[float, float]],
    origin: tuple[float, float],
) -> list[tuple[float, float]]:
    """Equirectangular projection to kilometre offsets around ``origin``."""
    cos_lat = math.cos(math.radians(origin[0]))
    projected = []
    for lat, lng in points:
        d_lng = normalize_lng(lng - origin[1])
        projected.append((d_lng * KM_PER_DEGREE_LAT * cos_lat, (lat - origin[0]) * KM_PER_DEGREE_LAT))
    return projected


# =============================================================================
# Minimum bounding circle (Welzl, iterative)
# =============================================================================


def _circle_two(a: tuple[float, float], b: tuple[float, float]) -> tuple[float, float, float]:
    cx = (a[0] + b[0]) / 2
    cy = (a[1] + b[1]) / 2
    return cx, cy, math.hypot(a[0] - cx, a[1] - cy)


def _circle_three(
    a: tuple[float, float],
    b: tuple[float, float],
    c: tuple[float, float],
) -> tuple[float, float, float] | None:
    d = 2 * (a[0] * (b[1] - c[1]) + b[0] * (c[1] - a[1]) + c[0] * (a[1] - b[1]))
    if abs(d) < 1e-12:
        return None
    a2 = a[0] ** 2 + a[1] ** 2
    b2 = b[0] ** 2 + b[1] ** 2
    c2 = c[0] ** 2 + c[1] ** 2
    ux = (a2 * (b[1] - c[1]) + b2 * (c[1] - a[1]) + c2 * (a[1] - b[1])) / d
    uy = (a2 * (c[0] - b[0]) + b2 * (a[0] - c[0]) + c2 * (b[0] - a[0])) / d
    return ux, uy, math.hypot(a[0] - ux, a[1] - uy)


def _inside(circle: tuple[float, float, float], p: tuple[float, float]) -> bool:
    return math.hypot(p[0] - circle[0], p[1] - circle[1]) <= circle[2] + 1e-9


def minimum_enclosing_radius_km(points: Sequence[tuple[float, float]]) -> float:
    """Radius of the smallest circle enclosing all points.

    Points are projected onto a local plane around their centroid, which is
    accurate for the tens-of-kilometres extents clusters have in practice.
    The shuffle uses a fixed seed so repeated calls agree exactly.
    """
    unique = list(dict.fromkeys(points))
    if len(unique) < 2:
        return 0.0

    planar = project_local(unique, centroid(unique))
    random.Random(0).shuffle(planar)

    circle = (planar[0][0], planar[0][1], 0.0)
    for i, p in enumerate(planar):
        if _inside(circle, p):
            continue
        circle = (p[0], p[1], 0.0)
        for j in range(i):
            q = planar[j]
            if _inside(circle, q):
                continue
            circle = _circle_two(p, q)
            for k in range(j):
                r = planar[k]
                if _inside(circle, r):
                    continue
                candidate = _circle_three(p, q, r)
                if candidate is None:
                    # Collinear: the widest pair spans the other point
                    candidate = max(
                        (_circle_two(p, q), _circle_two(p, r), _circle_two(q, r)),
                        key=lambda c: c[2],
                    )
                circle = candidate
    return circle[2]


def circle_area_km2(radius_km: float) -> float:
    return math.pi * radius_km * radius_km
