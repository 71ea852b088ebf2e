"""Read-only access to the report store."""

from datetime import date
from uuid import UUID

from sqlalchemy import select

from patternlens.db.models.report import Report, ReportStatus
from patternlens.detection.types import ReportPoint

from .base import BaseRepository


class ReportRepository(BaseRepository[Report, UUID]):
    """Queries over approved reports.

    The engine never writes reports; ``create`` is only used by fixtures and
    the ingestion pipeline that owns the table.
    """

    async def fetch_snapshot(self, since: date | None = None) -> list[ReportPoint]:
        """Approved reports as immutable points, ordered by report id.

        Args:
            since: Only include reports dated on or after this day. Undated
                reports are excluded when set.
        """
        stmt = select(
            Report.report_id,
            Report.category,
            Report.latitude,
            Report.longitude,
            Report.event_date,
        ).where(Report.status == ReportStatus.APPROVED.value)
        if since is not None:
            stmt = stmt.where(Report.event_date >= since)
        stmt = stmt.order_by(Report.report_id)

        result = await self.db.execute(stmt)
        return [
            ReportPoint(
                report_id=row.report_id,
                category=row.category,
                latitude=row.latitude,
                longitude=row.longitude,
                event_date=row.event_date,
            )
            for row in result
        ]

