"""Prometheus metrics for PatternLens.

This module provides Prometheus metrics for monitoring:
- Analysis runs (duration, status, patterns created/updated/archived)
- Detector executions (duration, candidates produced, skips)
- Pattern lifecycle transitions
- Insight cache outcomes and narrative generator latency
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from prometheus_client import REGISTRY, Counter, Histogram, generate_latest

if TYPE_CHECKING:
    from collections.abc import Generator

__all__ = [
    "ANALYSIS_RUN_COUNT",
    "ANALYSIS_RUN_DURATION",
    "DETECTOR_DURATION",
    "DETECTOR_CANDIDATES",
    "PATTERN_TRANSITIONS",
    "INSIGHT_REQUESTS",
    "GENERATOR_DURATION",
    "observe_analysis_run",
    "observe_generation",
    "record_detector",
    "record_transition",
    "record_insight_request",
    "get_metrics",
]

PREFIX = "patternlens"

# ============================================================================
# Analysis Run Metrics
# ============================================================================

ANALYSIS_RUN_DURATION = Histogram(
    f"{PREFIX}_analysis_run_duration_seconds",
    "Time to complete an analysis run",
    ["run_type", "status"],
    buckets=(0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0),
)

ANALYSIS_RUN_COUNT = Counter(
    f"{PREFIX}_analysis_runs_total",
    "Total number of analysis runs",
    ["run_type", "status"],
)

DETECTOR_DURATION = Histogram(
    f"{PREFIX}_detector_duration_seconds",
    "Time spent in a single detector",
    ["detector"],
    buckets=(0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0),
)

DETECTOR_CANDIDATES = Counter(
    f"{PREFIX}_detector_candidates_total",
    "Pattern candidates produced by detectors",
    ["detector"],
)

DETECTOR_SKIPS = Counter(
    f"{PREFIX}_detector_skips_total",
    "Detector runs skipped for lack of data",
    ["detector"],
)

# ============================================================================
# Lifecycle Metrics
# ============================================================================

PATTERN_TRANSITIONS = Counter(
    f"{PREFIX}_pattern_transitions_total",
    "Pattern status transitions",
    ["pattern_type", "from_status", "to_status"],
)

# ============================================================================
# Insight Metrics
# ============================================================================

INSIGHT_REQUESTS = Counter(
    f"{PREFIX}_insight_requests_total",
    "Insight lookups by outcome",
    ["insight_type", "result"],
)

GENERATOR_DURATION = Histogram(
    f"{PREFIX}_generator_duration_seconds",
    "Narrative generator call latency",
    ["status"],
    buckets=(0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0),
)


@contextmanager
def observe_analysis_run(run_type: str) -> Generator[dict[str, Any], None, None]:
    """Context manager for observing an analysis run.

    Args:
        run_type: full or incremental.

    Yields:
        Context dict for setting the final status.
    """
    context: dict[str, Any] = {"status": "completed"}
    start_time = time.perf_counter()

    try:
        yield context
    except Exception:
        context["status"] = "failed"
        raise
    finally:
        duration = time.perf_counter() - start_time
        status = context.get("status", "completed")
        ANALYSIS_RUN_DURATION.labels(run_type=run_type, status=status).observe(duration)
        ANALYSIS_RUN_COUNT.labels(run_type=run_type, status=status).inc()


@contextmanager
def observe_generation() -> Generator[dict[str, Any], None, None]:
    """Context manager timing one narrative generator call."""
    context: dict[str, Any] = {"status": "success"}
    start_time = time.perf_counter()

    try:
        yield context
    except BaseException:
        context["status"] = "error"
        raise
    finally:
        GENERATOR_DURATION.labels(status=context["status"]).observe(
            time.perf_counter() - start_time
        )


def record_detector(
    detector: str,
    duration_seconds: float,
    candidates: int,
    skipped: bool = False,
) -> None:
    """Record the outcome of one detector execution.

    Args:
        detector: Detector name.
        duration_seconds: Time spent detecting.
        candidates: Number of candidates produced.
        skipped: Whether the detector gave up for lack of data.
    """
    DETECTOR_DURATION.labels(detector=detector).observe(duration_seconds)
    DETECTOR_CANDIDATES.labels(detector=detector).inc(candidates)
    if skipped:
        DETECTOR_SKIPS.labels(detector=detector).inc()


def record_transition(pattern_type: str, from_status: str, to_status: str) -> None:
    PATTERN_TRANSITIONS.labels(
        pattern_type=pattern_type, from_status=from_status, to_status=to_status
    ).inc()


def record_insight_request(insight_type: str, result: str) -> None:
    """Record an insight lookup.

    Args:
        insight_type: pattern_narrative or weekly_digest.
        result: hit, generated or fallback.
    """
    INSIGHT_REQUESTS.labels(insight_type=insight_type, result=result).inc()


def get_metrics() -> bytes:
    """Get current metrics in Prometheus format."""
    return generate_latest(REGISTRY)
