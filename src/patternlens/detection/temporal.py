"""Weekly report volume and z-score anomaly detection."""

import math
import time
from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import date, timedelta

from pydantic import BaseModel, Field

from patternlens.core.exceptions import DataInsufficiencyError, DetectionValidationError
from patternlens.core.logging import get_logger
from patternlens.detection.clustering import validate_positive_int
from patternlens.detection.metadata import TemporalAnomalyMetadata
from patternlens.detection.scoring import temporal_confidence, temporal_significance
from patternlens.detection.types import (
    AnomalyKind,
    DetectorOutput,
    PatternCandidate,
    ReportPoint,
    WeeklyAnomaly,
    WeeklyCount,
)
from patternlens.utils.stats import z_score
from patternlens.utils.timeutils import week_start

logger = get_logger(__name__)

DEFAULT_Z_THRESHOLD = 2.5


def weekly_report_counts(
    reports: Iterable[ReportPoint],
    weeks_back: int,
    today: date,
    include_current_week: bool = True,
) -> list[WeeklyCount]:
    """Bucket dated reports by ISO week.

    Buckets start at the Monday of the week containing ``today - weeks_back``
    weeks and run up to the current week (or the last completed one). Weeks
    without reports are present with a zero count.

    Args:
        reports: Approved reports; undated ones are ignored
        weeks_back: How many weeks of history to cover
        today: Reference date
        include_current_week: Whether the in-progress week gets a bucket

    Returns:
        Weekly counts in chronological order

    Raises:
        DetectionValidationError: If weeks_back is not a positive integer
    """
    validate_positive_int("weeks_back", weeks_back)

    first_week = week_start(today - timedelta(weeks=weeks_back))
    last_week = week_start(today)
    if not include_current_week:
        last_week -= timedelta(weeks=1)
    if last_week < first_week:
        return []

    counts: dict[date, int] = {}
    categories: dict[date, Counter[str]] = {}
    week = first_week
    while week <= last_week:
        counts[week] = 0
        categories[week] = Counter()
        week += timedelta(weeks=1)

    for report in reports:
        if report.event_date is None:
            continue
        bucket = week_start(report.event_date)
        if bucket not in counts:
            continue
        counts[bucket] += 1
        categories[bucket][report.category] += 1

    return [
        WeeklyCount(week_start=w, count=counts[w], categories=dict(sorted(categories[w].items())))
        for w in sorted(counts)
    ]


def analyze_latest_week(
    series: Sequence[WeeklyCount],
    z_threshold: float = DEFAULT_Z_THRESHOLD,
    min_history_weeks: int = 8,
) -> WeeklyAnomaly:
    """Score the latest week of ``series`` against all earlier weeks.

    The baseline is the population mean and standard deviation of every week
    but the last. A flat baseline (zero deviation) scores 0 and is never
    anomalous.

    Raises:
        DataInsufficiencyError: If fewer than ``min_history_weeks`` weeks
            precede the latest one
    """
    if not math.isfinite(z_threshold) or z_threshold <= 0:
        raise DetectionValidationError("z_threshold", z_threshold, "must be positive")

    history = len(series) - 1 if series else 0
    if history < max(1, min_history_weeks):
        raise DataInsufficiencyError("temporal_anomaly", max(1, min_history_weeks), history)

    latest = series[-1]
    result = z_score(latest.count, [w.count for w in series[:-1]])

    if not result.defined:
        kind = AnomalyKind.NONE
    elif result.z_score > z_threshold:
        kind = AnomalyKind.SPIKE
    elif result.z_score < -z_threshold:
        kind = AnomalyKind.DROP
    else:
        kind = AnomalyKind.NONE

    return WeeklyAnomaly(
        week=latest,
        mean=result.mean,
        std_deviation=result.std_deviation,
        z_score=result.z_score,
        kind=kind,
    )


class TemporalDetectorConfig(BaseModel):
    """Configuration for the temporal anomaly detector."""

    weeks_back: int = Field(default=52, ge=1)
    z_threshold: float = Field(default=DEFAULT_Z_THRESHOLD, gt=0)
    min_history_weeks: int = Field(default=8, ge=1)


class TemporalAnomalyDetector:
    """Flags the last completed week when its volume is unusual."""

    name = "temporal_anomaly"
    pattern_type = "temporal_anomaly"

    def __init__(self, config: TemporalDetectorConfig | None = None) -> None:
        self.config = config or TemporalDetectorConfig()

    def detect(self, reports: Sequence[ReportPoint], today: date) -> DetectorOutput:
        started = time.perf_counter()
        series = weekly_report_counts(
            reports,
            weeks_back=self.config.weeks_back,
            today=today,
            include_current_week=False,
        )
        anomaly = analyze_latest_week(
            series,
            z_threshold=self.config.z_threshold,
            min_history_weeks=self.config.min_history_weeks,
        )

        logger.info(
            "Temporal analysis complete",
            week=anomaly.week.week_start.isoformat(),
            count=anomaly.week.count,
            z_score=round(anomaly.z_score, 3),
            kind=anomaly.kind.value,
        )

        candidates = []
        if anomaly.is_anomalous:
            candidates.append(self._to_candidate(anomaly, reports))

        return DetectorOutput(
            detector=self.name,
            pattern_type=self.pattern_type,
            candidates=candidates,
            duration_ms=(time.perf_counter() - started) * 1000,
        )

    def _to_candidate(
        self, anomaly: WeeklyAnomaly, reports: Sequence[ReportPoint]
    ) -> PatternCandidate:
        start = anomaly.week.week_start
        end = start + timedelta(days=6)
        members = {
            r.report_id: 1.0
            for r in reports
            if r.event_date is not None and start <= r.event_date <= end
        }
        return PatternCandidate(
            pattern_type=self.pattern_type,
            confidence_score=temporal_confidence(anomaly.z_score),
            significance_score=temporal_significance(anomaly.week.count, anomaly.z_score),
            members=members,
            metadata=TemporalAnomalyMetadata(
                z_score=anomaly.z_score,
                is_spike=anomaly.is_spike,
                mean_baseline=anomaly.mean,
                std_deviation=anomaly.std_deviation,
                week_start=start,
                category_breakdown=anomaly.week.categories,
            ),
            categories=sorted(anomaly.week.categories),
            start_date=start,
            end_date=end,
        )


def create_temporal_detector(
    config: TemporalDetectorConfig | None = None,
) -> TemporalAnomalyDetector:
    """Create a temporal anomaly detector."""
    return TemporalAnomalyDetector(config=config)
