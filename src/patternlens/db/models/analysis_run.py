"""Analysis run audit trail model."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from uuid_utils.compat import uuid7

from patternlens.utils.timeutils import as_utc

from .base import Base, PortableJSON, PortableUUID, UTCDateTime


class RunType(str, Enum):
    """Scope of an analysis run.

    - FULL: Every detector is evaluated
    - INCREMENTAL: Only the fast-moving detectors (clusters, weekly anomalies)
    """

    FULL = "full"
    INCREMENTAL = "incremental"


class RunStatus(str, Enum):
    """Status of an analysis run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class AnalysisRun(Base):
    """One execution of the detectors plus reconciliation."""

    __tablename__ = "pattern_analysis_runs"

    run_id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    run_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RunStatus.PENDING.value
    )

    # Statistics
    reports_analyzed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    patterns_detected: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    patterns_updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    patterns_archived: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Error tracking
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_stack: Mapped[str | None] = mapped_column(Text, nullable=True)

    started_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    run_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", PortableJSON(), nullable=False, default=dict
    )

    __table_args__ = (
        Index("idx_analysis_runs_status", "status"),
        Index("idx_analysis_runs_started", "started_at"),
    )

    @property
    def duration_seconds(self) -> float | None:
        if self.completed_at is None:
            return None
        return (as_utc(self.completed_at) - as_utc(self.started_at)).total_seconds()

    def __repr__(self) -> str:
        return f"<AnalysisRun(run_id={self.run_id}, type={self.run_type}, status={self.status})>"
