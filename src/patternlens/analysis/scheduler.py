"""Periodic analysis scheduler.

Runs a full analysis on fixed hour boundaries (every 6 hours by default)
and, on Sundays, generates the weekly digest once.

Usage:
    python -m patternlens.analysis.scheduler
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from patternlens.config.settings import get_settings
from patternlens.core.exceptions import AnalysisRunInProgressError
from patternlens.core.logging import get_logger, log_exception, setup_logging
from patternlens.db.models.analysis_run import AnalysisRun, RunType
from patternlens.db.models.insight import PatternInsight
from patternlens.insights.cache import InsightCache
from patternlens.utils.timeutils import as_utc, utc_now

from .orchestrator import AnalysisRunOrchestrator, create_analysis_orchestrator

logger = get_logger(__name__)

SUNDAY = 6


def next_run_time(now: datetime, interval_hours: int = 6) -> datetime:
    """The next hour boundary divisible by ``interval_hours`` after ``now``."""
    if not 1 <= interval_hours <= 24:
        raise ValueError(f"interval_hours must be between 1 and 24, got {interval_hours}")
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    slot = (now.hour // interval_hours + 1) * interval_hours
    return day_start + timedelta(hours=slot)


@dataclass
class SchedulerTick:
    """What one scheduled execution did."""

    run: AnalysisRun | None
    digest: PatternInsight | None = None
    skipped_reason: str | None = None


class AnalysisScheduler:
    """Runs analyses on a fixed cadence."""

    def __init__(
        self,
        orchestrator: AnalysisRunOrchestrator,
        insight_cache: InsightCache,
        interval_hours: int = 6,
        digest_weekday: int = SUNDAY,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.orchestrator = orchestrator
        self.insight_cache = insight_cache
        self.interval_hours = interval_hours
        self.digest_weekday = digest_weekday
        self._clock = clock

    def next_run_time(self, now: datetime | None = None) -> datetime:
        return next_run_time(now or self._clock(), self.interval_hours)

    async def run_once(self, now: datetime | None = None) -> SchedulerTick:
        """Run a full analysis, then the weekly digest when it is due."""
        now = now or self._clock()
        try:
            run = await self.orchestrator.run(RunType.FULL, trigger="scheduled")
        except AnalysisRunInProgressError as e:
            logger.warning("Scheduled analysis skipped", reason=str(e))
            return SchedulerTick(run=None, skipped_reason=str(e))

        digest = None
        try:
            if await self._digest_due(now):
                digest = await self.insight_cache.generate_digest()
        except Exception as e:
            log_exception(logger, e, operation="weekly_digest")

        return SchedulerTick(run=run, digest=digest)

    async def _digest_due(self, now: datetime) -> bool:
        if now.weekday() != self.digest_weekday:
            return False
        latest = await self.insight_cache.get_latest_digest()
        return latest is None or as_utc(latest.generated_at).date() < now.date()

    async def run_forever(self, stop: asyncio.Event | None = None) -> None:
        """Sleep until each boundary and run; returns when ``stop`` is set.

        A failed tick is logged and the loop carries on to the next boundary.
        """
        stop = stop or asyncio.Event()
        while not stop.is_set():
            now = self._clock()
            wait = (self.next_run_time(now) - now).total_seconds()
            logger.info("Next analysis scheduled", in_seconds=round(wait))
            try:
                await asyncio.wait_for(stop.wait(), timeout=wait)
                break
            except TimeoutError:
                pass
            try:
                tick = await self.run_once()
            except Exception as e:
                log_exception(logger, e, operation="scheduled_analysis")
                continue
            if tick.run is not None:
                logger.info(
                    "Scheduled analysis finished",
                    run_id=str(tick.run.run_id),
                    status=tick.run.status,
                    digest=tick.digest is not None,
                )


def create_analysis_scheduler() -> AnalysisScheduler:
    """Create a scheduler wired to the process-wide database and settings."""
    from patternlens.db.config import get_session_factory

    settings = get_settings()
    session_factory = get_session_factory()
    return AnalysisScheduler(
        orchestrator=create_analysis_orchestrator(session_factory, settings),
        insight_cache=InsightCache(session_factory, config=settings.insights),
        interval_hours=settings.analysis_interval_hours,
    )


async def _main() -> None:
    from patternlens.db.config import close_db, init_db

    await init_db()
    try:
        await create_analysis_scheduler().run_forever()
    finally:
        await close_db()


def main() -> None:
    setup_logging()
    asyncio.run(_main())


if __name__ == "__main__":
    main()
