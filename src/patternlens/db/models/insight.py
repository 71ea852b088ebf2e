"""Cached narrative insight model."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from uuid_utils.compat import uuid7

from .base import Base, PortableUUID, UTCDateTime


class InsightType(str, Enum):
    """Kinds of generated insight."""

    PATTERN_NARRATIVE = "pattern_narrative"
    WEEKLY_DIGEST = "weekly_digest"


class PatternInsight(Base):
    """Generated narrative for a pattern, or an aggregate digest.

    Rows are append-only: a regeneration inserts a new row and older rows
    are only ever flagged stale.
    """

    __tablename__ = "pattern_insights"

    insight_id: Mapped[UUID] = mapped_column(PortableUUID(), primary_key=True, default=uuid7)
    pattern_id: Mapped[UUID | None] = mapped_column(
        PortableUUID(),
        ForeignKey("detected_patterns.pattern_id", ondelete="CASCADE"),
        nullable=True,  # Aggregate digests have no pattern
    )
    insight_type: Mapped[str] = mapped_column(String(50), nullable=False)

    # Content
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[str] = mapped_column(String(500), nullable=False)

    # Provenance
    model_used: Mapped[str] = mapped_column(String(100), nullable=False)
    source_data_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_fallback: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Validity
    is_stale: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    generated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    valid_until: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    __table_args__ = (
        Index("idx_insights_pattern_type", "pattern_id", "insight_type"),
        Index("idx_insights_valid", "valid_until", "is_stale"),
    )

    def __repr__(self) -> str:
        return (
            f"<PatternInsight(insight_id={self.insight_id}, "
            f"type={self.insight_type}, pattern_id={self.pattern_id})>"
        )
