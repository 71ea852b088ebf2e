"""Data types shared by the detectors.

Detectors are pure functions over an immutable snapshot of reports. Their
raw outputs (clusters, weekly counts, monthly indices) are exposed directly
to API callers, and each detector additionally turns its findings into
``PatternCandidate`` objects that the lifecycle manager reconciles with the
persisted patterns.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any
from uuid import UUID

from patternlens.detection.metadata import PatternMetadata, dump_metadata


@dataclass(frozen=True)
class ReportPoint:
    """Read-only view of one approved report."""

    report_id: UUID
    category: str
    latitude: float | None = None
    longitude: float | None = None
    event_date: date | None = None

    @property
    def is_geocoded(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(frozen=True)
class GeographicCluster:
    """A density-connected group of reports."""

    cluster_id: int
    report_ids: tuple[UUID, ...]
    center_lat: float
    center_lng: float
    report_count: int
    density: float
    radius_km: float
    categories: tuple[str, ...]
    first_date: date | None
    last_date: date | None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "cluster_id": self.cluster_id,
            "report_ids": [str(r) for r in self.report_ids],
            "center_lat": self.center_lat,
            "center_lng": self.center_lng,
            "report_count": self.report_count,
            "density": self.density,
            "radius_km": self.radius_km,
            "categories": list(self.categories),
            "first_date": self.first_date.isoformat() if self.first_date else None,
            "last_date": self.last_date.isoformat() if self.last_date else None,
        }


@dataclass(frozen=True)
class WeeklyCount:
    """Report volume for one ISO week."""

    week_start: date
    count: int
    categories: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "week": self.week_start.isoformat(),
            "count": self.count,
            "categories": dict(self.categories),
        }


class AnomalyKind(str, Enum):
    """Classification of the latest week against its history."""

    SPIKE = "spike"
    DROP = "drop"
    NONE = "none"


@dataclass(frozen=True)
class WeeklyAnomaly:
    """Z-score analysis of the latest week in a series."""

    week: WeeklyCount
    mean: float
    std_deviation: float
    z_score: float
    kind: AnomalyKind

    @property
    def is_spike(self) -> bool:
        return self.kind == AnomalyKind.SPIKE

    @property
    def is_anomalous(self) -> bool:
        return self.kind != AnomalyKind.NONE


class SeasonClass(str, Enum):
    """Interpretation of a seasonal index."""

    PEAK = "peak"
    LOW = "low"
    AVERAGE = "average"


@dataclass(frozen=True)
class MonthlySeasonality:
    """Seasonal index for one calendar month."""

    month: int
    count: int
    index: float
    top_category: str | None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "month": self.month,
            "count": self.count,
            "index": self.index,
            "top_category": self.top_category,
        }


@dataclass
class PatternCandidate:
    """A detector finding ready for reconciliation with stored patterns.

    ``members`` maps report id to relevance score in [0, 1].
    """

    pattern_type: str
    confidence_score: float
    significance_score: float
    members: dict[UUID, float]
    metadata: PatternMetadata
    categories: list[str] = field(default_factory=list)
    center_lat: float | None = None
    center_lng: float | None = None
    radius_km: float | None = None
    match_radius_km: float | None = None
    start_date: date | None = None
    end_date: date | None = None

    @property
    def report_count(self) -> int:
        return len(self.members)

    @property
    def has_center(self) -> bool:
        return self.center_lat is not None and self.center_lng is not None

    def metadata_dict(self) -> dict[str, Any]:
        return dump_metadata(self.metadata)


@dataclass
class DetectorOutput:
    """Candidates produced by one detector in one run."""

    detector: str
    pattern_type: str
    candidates: list[PatternCandidate] = field(default_factory=list)
    skipped_reason: str | None = None
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Summary for the run audit record."""
        return {
            "detector": self.detector,
            "pattern_type": self.pattern_type,
            "candidates": len(self.candidates),
            "skipped_reason": self.skipped_reason,
            "duration_ms": round(self.duration_ms, 2),
        }
