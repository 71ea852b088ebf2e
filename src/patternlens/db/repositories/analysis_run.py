"""Repository for the analysis run audit trail."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update

from patternlens.db.models.analysis_run import AnalysisRun, RunStatus

from .base import BaseRepository


class AnalysisRunRepository(BaseRepository[AnalysisRun, UUID]):
    """Typed access to ``pattern_analysis_runs``."""

    async def get_running(self) -> AnalysisRun | None:
        """The most recently started run still marked running."""
        stmt = (
            select(AnalysisRun)
            .where(AnalysisRun.status == RunStatus.RUNNING.value)
            .order_by(AnalysisRun.started_at.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def fail_abandoned(self, started_before: datetime, now: datetime) -> int:
        """Mark runs stuck in ``running`` since before ``started_before`` failed.

        Returns:
            Number of runs marked failed
        """
        stmt = (
            update(AnalysisRun)
            .where(
                AnalysisRun.status == RunStatus.RUNNING.value,
                AnalysisRun.started_at < started_before,
            )
            .values(
                status=RunStatus.FAILED.value,
                error_message="Run abandoned: exceeded the running timeout",
                completed_at=now,
            )
            .execution_options(synchronize_session="fetch")
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount or 0

    async def mark_failed(
        self,
        run_id: UUID,
        error_message: str,
        error_stack: str | None,
        completed_at: datetime,
    ) -> None:
        """Record a failure with a direct UPDATE and commit it.

        Works after a rollback, when the session's copy of the run is expired.
        """
        stmt = (
            update(AnalysisRun)
            .where(AnalysisRun.run_id == run_id)
            .values(
                status=RunStatus.FAILED.value,
                error_message=error_message,
                error_stack=error_stack,
                completed_at=completed_at,
            )
            .execution_options(synchronize_session="fetch")
        )
        await self.db.execute(stmt)
        await self.db.commit()

    async def list_recent(self, limit: int = 20, offset: int = 0) -> list[AnalysisRun]:
        return await self.list(limit=limit, offset=offset, order_by="started_at", descending=True)
