"""Repository for cached pattern insights and digests."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update

from patternlens.db.models.insight import InsightType, PatternInsight

from .base import BaseRepository


class InsightRepository(BaseRepository[PatternInsight, UUID]):
    """Typed access to ``pattern_insights``."""

    async def get_valid_narrative(self, pattern_id: UUID, now: datetime) -> PatternInsight | None:
        """Newest non-stale narrative for a pattern that has not expired."""
        stmt = (
            select(PatternInsight)
            .where(
                PatternInsight.pattern_id == pattern_id,
                PatternInsight.insight_type == InsightType.PATTERN_NARRATIVE.value,
                PatternInsight.is_stale.is_(False),
                PatternInsight.valid_until > now,
            )
            .order_by(PatternInsight.generated_at.desc(), PatternInsight.insight_id.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def latest_narrative(self, pattern_id: UUID) -> PatternInsight | None:
        """Newest narrative for a pattern regardless of validity."""
        stmt = (
            select(PatternInsight)
            .where(
                PatternInsight.pattern_id == pattern_id,
                PatternInsight.insight_type == InsightType.PATTERN_NARRATIVE.value,
            )
            .order_by(PatternInsight.generated_at.desc(), PatternInsight.insight_id.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_stale(self, pattern_id: UUID) -> int:
        """Flag every fresh insight of a pattern stale. Flushes, no commit.

        Returns:
            Number of rows flagged
        """
        stmt = (
            update(PatternInsight)
            .where(
                PatternInsight.pattern_id == pattern_id,
                PatternInsight.is_stale.is_(False),
            )
            .values(is_stale=True)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.db.execute(stmt)
        await self.db.flush()
        return result.rowcount or 0

    async def latest_digest(self, now: datetime) -> PatternInsight | None:
        """Newest weekly digest that is still valid."""
        stmt = (
            select(PatternInsight)
            .where(
                PatternInsight.insight_type == InsightType.WEEKLY_DIGEST.value,
                PatternInsight.is_stale.is_(False),
                PatternInsight.valid_until > now,
            )
            .order_by(PatternInsight.generated_at.desc(), PatternInsight.insight_id.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
