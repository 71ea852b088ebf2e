"""Month-of-year seasonality over a trailing multi-year window."""

import calendar
import time
from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import date

from pydantic import BaseModel, Field

from patternlens.core.exceptions import DataInsufficiencyError
from patternlens.core.logging import get_logger
from patternlens.detection.clustering import validate_positive_int
from patternlens.detection.metadata import SeasonalPatternMetadata
from patternlens.detection.scoring import SEASONAL_CONFIDENCE, seasonal_significance
from patternlens.detection.types import (
    DetectorOutput,
    MonthlySeasonality,
    PatternCandidate,
    ReportPoint,
    SeasonClass,
)
from patternlens.utils.stats import seasonal_indices
from patternlens.utils.timeutils import subtract_years

logger = get_logger(__name__)

PEAK_INDEX = 1.5
LOW_INDEX = 0.5


def _in_window(report: ReportPoint, since: date, until: date) -> bool:
    return report.event_date is not None and since <= report.event_date <= until


def seasonal_index(
    reports: Iterable[ReportPoint],
    today: date,
    years_back: int = 3,
) -> list[MonthlySeasonality]:
    """Per-month counts and seasonal indices for the last ``years_back`` years.

    All twelve months are returned, in calendar order. The index divides each
    month's count by the average over the twelve months; with no reports at
    all every index is 1.0. The top category is the most frequent one in the
    month, ties going to the alphabetically first.
    """
    validate_positive_int("years_back", years_back)
    since = subtract_years(today, years_back)

    counts: Counter[int] = Counter()
    by_category: dict[int, Counter[str]] = {m: Counter() for m in range(1, 13)}
    for report in reports:
        if not _in_window(report, since, today):
            continue
        month = report.event_date.month  # type: ignore[union-attr]
        counts[month] += 1
        by_category[month][report.category] += 1

    monthly = [counts[m] for m in range(1, 13)]
    indices = seasonal_indices(monthly)

    result = []
    for month, (count, index) in enumerate(zip(monthly, indices, strict=True), start=1):
        ranked = sorted(by_category[month].items(), key=lambda item: (-item[1], item[0]))
        result.append(
            MonthlySeasonality(
                month=month,
                count=count,
                index=index,
                top_category=ranked[0][0] if ranked else None,
            )
        )
    return result


def classify_season(
    index: float,
    peak_index: float = PEAK_INDEX,
    low_index: float = LOW_INDEX,
) -> SeasonClass:
    if index > peak_index:
        return SeasonClass.PEAK
    if index < low_index:
        return SeasonClass.LOW
    return SeasonClass.AVERAGE


class SeasonalAnalyzerConfig(BaseModel):
    """Configuration for the seasonal analyzer."""

    years_back: int = Field(default=3, ge=1)
    min_total_reports: int = Field(default=24, ge=0)
    peak_index: float = Field(default=PEAK_INDEX, gt=1.0)
    low_index: float = Field(default=LOW_INDEX, ge=0.0, lt=1.0)


class SeasonalAnalyzer:
    """Emits one pattern per peak or low month."""

    name = "seasonal"
    pattern_type = "seasonal_pattern"

    def __init__(self, config: SeasonalAnalyzerConfig | None = None) -> None:
        self.config = config or SeasonalAnalyzerConfig()

    def detect(self, reports: Sequence[ReportPoint], today: date) -> DetectorOutput:
        started = time.perf_counter()
        months = seasonal_index(reports, today=today, years_back=self.config.years_back)

        total = sum(m.count for m in months)
        if total < self.config.min_total_reports:
            raise DataInsufficiencyError(self.name, self.config.min_total_reports, total)

        since = subtract_years(today, self.config.years_back)
        candidates = []
        for month in months:
            season = classify_season(month.index, self.config.peak_index, self.config.low_index)
            if season == SeasonClass.AVERAGE:
                continue
            members = [
                r
                for r in reports
                if _in_window(r, since, today) and r.event_date.month == month.month  # type: ignore[union-attr]
            ]
            candidates.append(self._to_candidate(month, season, members))

        logger.info(
            "Seasonal analysis complete",
            total_reports=total,
            peaks=sum(1 for c in candidates if c.metadata.is_peak),  # type: ignore[union-attr]
            lows=sum(1 for c in candidates if not c.metadata.is_peak),  # type: ignore[union-attr]
        )
        return DetectorOutput(
            detector=self.name,
            pattern_type=self.pattern_type,
            candidates=candidates,
            duration_ms=(time.perf_counter() - started) * 1000,
        )

    def _to_candidate(
        self,
        month: MonthlySeasonality,
        season: SeasonClass,
        members: Sequence[ReportPoint],
    ) -> PatternCandidate:
        dates = [r.event_date for r in members if r.event_date is not None]
        return PatternCandidate(
            pattern_type=self.pattern_type,
            confidence_score=SEASONAL_CONFIDENCE,
            significance_score=seasonal_significance(month.index),
            members={r.report_id: 1.0 for r in members},
            metadata=SeasonalPatternMetadata(
                month=month.month,
                month_name=calendar.month_name[month.month],
                seasonal_index=month.index,
                is_peak=season == SeasonClass.PEAK,
                top_category=month.top_category,
                years_back=self.config.years_back,
            ),
            categories=sorted({r.category for r in members}),
            start_date=min(dates) if dates else None,
            end_date=max(dates) if dates else None,
        )


def create_seasonal_analyzer(
    config: SeasonalAnalyzerConfig | None = None,
) -> SeasonalAnalyzer:
    """Create a seasonal analyzer."""
    return SeasonalAnalyzer(config=config)
