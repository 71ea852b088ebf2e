"""Analysis runs: orchestration and scheduling."""

from patternlens.analysis.orchestrator import (
    INCREMENTAL_TYPES,
    AnalysisRunOrchestrator,
    create_analysis_orchestrator,
    is_run_in_progress,
)
from patternlens.analysis.scheduler import (
    AnalysisScheduler,
    SchedulerTick,
    create_analysis_scheduler,
    next_run_time,
)

__all__ = [
    "INCREMENTAL_TYPES",
    "AnalysisRunOrchestrator",
    "AnalysisScheduler",
    "SchedulerTick",
    "create_analysis_orchestrator",
    "create_analysis_scheduler",
    "is_run_in_progress",
    "next_run_time",
]
