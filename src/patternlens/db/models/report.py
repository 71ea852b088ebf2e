"""Report model.

Reports are owned by the submission pipeline; the pattern engine only reads
them. The mapping covers the columns the detectors need.
"""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, Float, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column
from uuid_utils.compat import uuid7

from .base import Base, PortableUUID, UTCDateTime


class ReportStatus(str, Enum):
    """Moderation status of a report. Only approved reports are analysed."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ARCHIVED = "archived"


class Report(Base):
    """A user- or archive-submitted report."""

    __tablename__ = "reports"

    report_id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ReportStatus.PENDING.value
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    event_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_reports_status_event_date", "status", "event_date"),
        Index("idx_reports_category", "category"),
    )

    def __repr__(self) -> str:
        return f"<Report(report_id={self.report_id}, category={self.category})>"
