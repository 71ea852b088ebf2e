"""Repository for detected patterns and their report links."""

from collections.abc import Mapping, Sequence
from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, delete, func, or_, select

from patternlens.db.models.pattern import (
    LIVE_STATUSES,
    DetectedPattern,
    PatternReportLink,
    PatternStatus,
)
from patternlens.utils.geo import BoundingBox

from .base import BaseRepository


def _status_values(statuses: Sequence[PatternStatus | str]) -> list[str]:
    return [s.value if isinstance(s, PatternStatus) else s for s in statuses]


class PatternRepository(BaseRepository[DetectedPattern, UUID]):
    """Typed access to ``detected_patterns`` and ``pattern_reports``."""

    async def find_by_type(self, pattern_type: str) -> list[DetectedPattern]:
        """Every pattern of a type, oldest first.

        Used for matching detector results, so historical patterns are
        included to allow reactivation.
        """
        stmt = (
            select(DetectedPattern)
            .where(DetectedPattern.pattern_type == pattern_type)
            .order_by(DetectedPattern.first_detected_at, DetectedPattern.pattern_id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_patterns(
        self,
        *,
        pattern_type: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[DetectedPattern], int]:
        """Filtered page of patterns, most significant first, plus the total."""
        conditions = []
        if pattern_type is not None:
            conditions.append(DetectedPattern.pattern_type == pattern_type)
        if status is not None:
            conditions.append(DetectedPattern.status == status)

        count_stmt = select(func.count(DetectedPattern.pattern_id)).where(*conditions)
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = (
            select(DetectedPattern)
            .where(*conditions)
            .order_by(DetectedPattern.significance_score.desc(), DetectedPattern.pattern_id)
            .limit(limit)
            .offset(offset)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def trending(
        self,
        limit: int,
        statuses: Sequence[PatternStatus | str] = (PatternStatus.ACTIVE, PatternStatus.EMERGING),
    ) -> list[DetectedPattern]:
        """Patterns in the given statuses ordered by significance descending."""
        stmt = (
            select(DetectedPattern)
            .where(DetectedPattern.status.in_(_status_values(statuses)))
            .order_by(
                DetectedPattern.significance_score.desc(),
                DetectedPattern.last_updated_at.desc(),
                DetectedPattern.pattern_id,
            )
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def within_box(
        self,
        box: BoundingBox,
        statuses: Sequence[PatternStatus | str],
    ) -> list[DetectedPattern]:
        """Patterns whose centre falls inside a bounding box.

        A coarse prefilter; callers compute exact distances.
        """
        if box.wraps_antimeridian:
            lng_clause = or_(
                DetectedPattern.center_lng >= box.min_lng,
                DetectedPattern.center_lng <= box.max_lng,
            )
        else:
            lng_clause = DetectedPattern.center_lng.between(box.min_lng, box.max_lng)

        stmt = select(DetectedPattern).where(
            DetectedPattern.status.in_(_status_values(statuses)),
            DetectedPattern.center_lat.is_not(None),
            DetectedPattern.center_lng.is_not(None),
            DetectedPattern.center_lat.between(box.min_lat, box.max_lat),
            lng_clause,
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def untouched_since(self, cutoff: datetime) -> list[DetectedPattern]:
        """Live patterns whose last update is older than ``cutoff``."""
        stmt = select(DetectedPattern).where(
            and_(
                DetectedPattern.status.in_(_status_values(LIVE_STATUSES)),
                DetectedPattern.last_updated_at < cutoff,
            )
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    # -------------------------------------------------------------------------
    # Report links
    # -------------------------------------------------------------------------

    async def get_links(self, pattern_id: UUID) -> list[PatternReportLink]:
        stmt = (
            select(PatternReportLink)
            .where(PatternReportLink.pattern_id == pattern_id)
            .order_by(PatternReportLink.report_id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def replace_links(
        self,
        pattern_id: UUID,
        members: Mapping[UUID, float],
        now: datetime,
    ) -> int:
        """Make the pattern's links equal ``members``.

        Links for retained reports keep their ``added_at`` and get the new
        relevance; links for departed reports are deleted. Flushes but does
        not commit.

        Returns:
            Number of links after the update
        """
        existing = {link.report_id: link for link in await self.get_links(pattern_id)}

        departed = [rid for rid in existing if rid not in members]
        if departed:
            await self.db.execute(
                delete(PatternReportLink).where(
                    PatternReportLink.pattern_id == pattern_id,
                    PatternReportLink.report_id.in_(departed),
                )
            )

        for report_id, relevance in members.items():
            link = existing.get(report_id)
            if link is not None:
                link.relevance_score = relevance
            else:
                self.db.add(
                    PatternReportLink(
                        pattern_id=pattern_id,
                        report_id=report_id,
                        relevance_score=relevance,
                        added_at=now,
                    )
                )

        await self.db.flush()
        return len(members)

