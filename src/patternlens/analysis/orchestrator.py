"""Analysis run orchestration.

One run loads a single snapshot of approved reports, runs the detectors in
parallel worker threads, reconciles their output through the lifecycle
manager and records the outcome as an ``AnalysisRun`` row. Runs are
serialized per process by a lock and across processes by refusing to start
while another run is still marked ``running``.
"""

import asyncio
import time
import traceback
from collections.abc import Callable, Sequence
from datetime import date, datetime, timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from patternlens.config.settings import Settings, get_settings
from patternlens.core.exceptions import AnalysisRunInProgressError, DataInsufficiencyError
from patternlens.core.logging import LogContext, get_logger, log_exception
from patternlens.db.models.analysis_run import AnalysisRun, RunStatus, RunType
from patternlens.db.models.pattern import PatternType
from patternlens.db.repositories.analysis_run import AnalysisRunRepository
from patternlens.db.repositories.report import ReportRepository
from patternlens.detection import Detector, build_detectors
from patternlens.detection.types import DetectorOutput, ReportPoint
from patternlens.observability.metrics import observe_analysis_run, record_detector
from patternlens.patterns.lifecycle import PatternLifecycleManager
from patternlens.utils.timeutils import utc_now

logger = get_logger(__name__)

INCREMENTAL_TYPES = frozenset(
    {PatternType.GEOGRAPHIC_CLUSTER.value, PatternType.TEMPORAL_ANOMALY.value}
)

# Serializes runs within this process
_run_lock = asyncio.Lock()
_active_run: tuple[UUID | str, datetime | None] | None = None


def is_run_in_progress() -> bool:
    """Whether this process is currently executing a run."""
    return _run_lock.locked()


class AnalysisRunOrchestrator:
    """Top-level entry point for pattern analysis."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings | None = None,
        detectors: Sequence[Detector] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            session_factory: Factory for the run's database session.
            settings: Application settings.
            detectors: Detectors to run; built from settings when omitted.
            clock: Source of the current time.
        """
        self._session_factory = session_factory
        self.settings = settings or get_settings()
        self.detectors = list(detectors) if detectors is not None else build_detectors(
            self.settings.detection
        )
        self._clock = clock

    async def run(
        self,
        run_type: RunType = RunType.FULL,
        trigger: str = "manual",
    ) -> AnalysisRun:
        """Execute one analysis run.

        Failures inside the run are recorded on the returned AnalysisRun
        (status ``failed``) rather than raised.

        Args:
            run_type: FULL evaluates every detector, INCREMENTAL only the
                cluster and weekly anomaly detectors
            trigger: Who asked for the run (manual, scheduled, api)

        Raises:
            AnalysisRunInProgressError: If another run is executing
        """
        global _active_run

        if _run_lock.locked():
            run_id, started_at = _active_run or ("unknown", None)
            raise AnalysisRunInProgressError(run_id, started_at)

        async with _run_lock:
            _active_run = ("pending", self._clock())
            try:
                async with self._session_factory() as session:
                    run = await self._start(session, run_type, trigger)
                    _active_run = (run.run_id, run.started_at)
                    return await self._execute_recorded(session, run, run_type)
            finally:
                _active_run = None

    async def _start(self, session: AsyncSession, run_type: RunType, trigger: str) -> AnalysisRun:
        runs = AnalysisRunRepository(session)
        now = self._clock()

        timeout = timedelta(minutes=self.settings.lifecycle.stale_run_timeout_minutes)
        abandoned = await runs.fail_abandoned(started_before=now - timeout, now=now)
        if abandoned:
            logger.warning("Abandoned analysis runs marked failed", count=abandoned)

        running = await runs.get_running()
        if running is not None:
            raise AnalysisRunInProgressError(running.run_id, running.started_at)

        run = AnalysisRun(
            run_type=run_type.value,
            status=RunStatus.PENDING.value,
            started_at=now,
            run_metadata={"trigger": trigger},
        )
        await runs.create(run)
        return await runs.update(run, {"status": RunStatus.RUNNING.value})

    async def _execute_recorded(
        self,
        session: AsyncSession,
        run: AnalysisRun,
        run_type: RunType,
    ) -> AnalysisRun:
        run_id = run.run_id
        with (
            LogContext(run_id=str(run_id), run_type=run_type.value),
            observe_analysis_run(run_type.value) as metrics,
        ):
            logger.info("Analysis run started")
            try:
                await self._execute(session, run, run_type)
            except Exception as e:
                metrics["status"] = RunStatus.FAILED.value
                await session.rollback()
                await AnalysisRunRepository(session).mark_failed(
                    run_id,
                    error_message=str(e) or type(e).__name__,
                    error_stack=traceback.format_exc(),
                    completed_at=self._clock(),
                )
                await session.refresh(run)
                log_exception(logger, e, operation="analysis_run")
                return run

            logger.info(
                "Analysis run completed",
                reports=run.reports_analyzed,
                created=run.patterns_detected,
                updated=run.patterns_updated,
                archived=run.patterns_archived,
            )
            return run

    async def _execute(self, session: AsyncSession, run: AnalysisRun, run_type: RunType) -> None:
        now = self._clock()
        snapshot = await ReportRepository(session).fetch_snapshot()
        run.reports_analyzed = len(snapshot)

        detectors = [
            d
            for d in self.detectors
            if run_type == RunType.FULL or d.pattern_type in INCREMENTAL_TYPES
        ]
        outputs = await asyncio.gather(
            *(self._run_detector(d, snapshot, now.date()) for d in detectors)
        )
        evaluated = [o.pattern_type for o in outputs if o.skipped_reason is None]

        manager = PatternLifecycleManager(session, self.settings.lifecycle, now=now)
        outcome = await manager.reconcile(outputs, run.run_id, evaluated)
        outcome.merge(await manager.archive_stale())

        run.patterns_detected = outcome.created
        run.patterns_updated = outcome.updated
        run.patterns_archived = outcome.archived
        run.status = RunStatus.COMPLETED.value
        run.completed_at = self._clock()
        run.run_metadata = {
            **(run.run_metadata or {}),
            "detectors": [o.to_dict() for o in outputs],
            "evaluated_types": sorted(evaluated),
            "transitions": len(outcome.transitions),
            "skipped_candidates": outcome.skipped,
            "insights_invalidated": outcome.invalidated,
        }
        await session.commit()

    async def _run_detector(
        self,
        detector: Detector,
        snapshot: list[ReportPoint],
        today: date,
    ) -> DetectorOutput:
        started = time.perf_counter()
        try:
            output = await asyncio.to_thread(detector.detect, snapshot, today)
        except DataInsufficiencyError as e:
            logger.info("Detector skipped", detector=detector.name, reason=str(e))
            output = DetectorOutput(
                detector=detector.name,
                pattern_type=detector.pattern_type,
                skipped_reason=str(e),
                duration_ms=(time.perf_counter() - started) * 1000,
            )

        record_detector(
            detector.name,
            duration_seconds=output.duration_ms / 1000,
            candidates=len(output.candidates),
            skipped=output.skipped_reason is not None,
        )
        return output


def create_analysis_orchestrator(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    settings: Settings | None = None,
) -> AnalysisRunOrchestrator:
    """Create an orchestrator bound to the process-wide database by default.

    Args:
        session_factory: Optional session factory override.
        settings: Optional settings override.

    Returns:
        Configured AnalysisRunOrchestrator instance.
    """
    if session_factory is None:
        from patternlens.db.config import get_session_factory

        session_factory = get_session_factory()
    return AnalysisRunOrchestrator(session_factory=session_factory, settings=settings)
