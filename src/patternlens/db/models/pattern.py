"""Detected pattern models for PatternLens database."""

from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import (
    Date,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column
from uuid_utils.compat import uuid7

from .base import Base, PortableJSON, PortableUUID, UTCDateTime


class PatternType(str, Enum):
    """Kinds of emergent structure the engine can record."""

    GEOGRAPHIC_CLUSTER = "geographic_cluster"
    TEMPORAL_ANOMALY = "temporal_anomaly"
    FLAP_WAVE = "flap_wave"
    CHARACTERISTIC_CORRELATION = "characteristic_correlation"
    REGIONAL_CONCENTRATION = "regional_concentration"
    SEASONAL_PATTERN = "seasonal_pattern"
    TIME_OF_DAY_PATTERN = "time_of_day_pattern"
    DATE_CORRELATION = "date_correlation"


class PatternStatus(str, Enum):
    """Lifecycle status of a detected pattern.

    - EMERGING: Seen for the first time, not yet confirmed by a second run
    - ACTIVE: Confirmed across runs with stable or growing significance
    - DECLINING: Significance or membership is shrinking
    - HISTORICAL: No longer detected; kept for reference
    """

    EMERGING = "emerging"
    ACTIVE = "active"
    DECLINING = "declining"
    HISTORICAL = "historical"


LIVE_STATUSES: tuple[PatternStatus, ...] = (
    PatternStatus.EMERGING,
    PatternStatus.ACTIVE,
    PatternStatus.DECLINING,
)


class DetectedPattern(Base):
    """A statistically interesting grouping of reports.

    ``report_count`` always equals the number of PatternReportLink rows for
    the pattern; the lifecycle manager rewrites both together.
    """

    __tablename__ = "detected_patterns"

    pattern_id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    pattern_type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PatternStatus.EMERGING.value
    )

    # Scoring
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    significance_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    report_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Geographic bounds (spatial patterns only)
    center_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    center_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    radius_km: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Temporal bounds
    pattern_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    pattern_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # "metadata" is reserved on declarative classes
    pattern_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", PortableJSON(), nullable=False, default=dict
    )
    categories: Mapped[list[str]] = mapped_column(PortableJSON(), nullable=False, default=list)

    # Narrative mirror of the newest insight
    ai_title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    ai_summary: Mapped[str | None] = mapped_column(String(500), nullable=True)
    ai_narrative: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_narrative_generated_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )

    # Lifecycle bookkeeping
    first_detected_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), nullable=False
    )
    last_updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), nullable=False
    )
    previous_significance_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    previous_report_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    consecutive_detections: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    stagnant_runs: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_run_id: Mapped[UUID | None] = mapped_column(PortableUUID(), nullable=True)

    __table_args__ = (
        Index("idx_patterns_type", "pattern_type"),
        Index("idx_patterns_status", "status"),
        Index("idx_patterns_significance", "significance_score"),
        Index("idx_patterns_updated", "last_updated_at"),
        Index("idx_patterns_center", "center_lat", "center_lng"),
    )

    def __repr__(self) -> str:
        return (
            f"<DetectedPattern(pattern_id={self.pattern_id}, "
            f"type={self.pattern_type}, status={self.status})>"
        )


class PatternReportLink(Base):
    """Membership of a report in a pattern."""

    __tablename__ = "pattern_reports"

    link_id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    pattern_id: Mapped[UUID] = mapped_column(
        PortableUUID(),
        ForeignKey("detected_patterns.pattern_id", ondelete="CASCADE"),
        nullable=False,
    )
    report_id: Mapped[UUID] = mapped_column(
        PortableUUID(), ForeignKey("reports.report_id", ondelete="CASCADE"), nullable=False
    )
    relevance_score: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    added_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("pattern_id", "report_id", name="uq_pattern_report"),
        Index("idx_pattern_reports_pattern", "pattern_id"),
        Index("idx_pattern_reports_report", "report_id"),
    )

    def __repr__(self) -> str:
        return f"<PatternReportLink(pattern_id={self.pattern_id}, report_id={self.report_id})>"
