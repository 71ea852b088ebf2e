"""Observability for PatternLens.

Usage:
    from patternlens.observability import observe_analysis_run

    with observe_analysis_run("full") as ctx:
        run = await orchestrator.run(RunType.FULL)
        ctx["status"] = run.status
"""

from patternlens.observability.metrics import (
    ANALYSIS_RUN_COUNT,
    ANALYSIS_RUN_DURATION,
    DETECTOR_CANDIDATES,
    DETECTOR_DURATION,
    DETECTOR_SKIPS,
    GENERATOR_DURATION,
    INSIGHT_REQUESTS,
    PATTERN_TRANSITIONS,
    get_metrics,
    observe_analysis_run,
    observe_generation,
    record_detector,
    record_insight_request,
    record_transition,
)

__all__ = [
    "ANALYSIS_RUN_COUNT",
    "ANALYSIS_RUN_DURATION",
    "DETECTOR_CANDIDATES",
    "DETECTOR_DURATION",
    "DETECTOR_SKIPS",
    "GENERATOR_DURATION",
    "INSIGHT_REQUESTS",
    "PATTERN_TRANSITIONS",
    "get_metrics",
    "observe_analysis_run",
    "observe_generation",
    "record_detector",
    "record_insight_request",
    "record_transition",
]
