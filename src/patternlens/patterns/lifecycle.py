"""Pattern lifecycle management.

Reconciles detector candidates with persisted patterns and drives the
status state machine:

    emerging  -> active      second consecutive detection, significance stable
    active    -> declining   significance or report count fell by more than
                             ``decline_ratio``, or not detected
    declining -> historical  not detected, or ``max_stagnant_runs`` detections
                             without growth
    declining/historical -> active   re-detected with renewed significance
    emerging  -> historical  not detected again

Nothing ever returns to ``emerging``. All writes happen here, sequentially,
inside the caller's transaction; the caller commits.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from patternlens.config.settings import LifecycleConfig, get_settings
from patternlens.core.exceptions import PersistenceError
from patternlens.core.logging import get_logger
from patternlens.db.models.pattern import (
    LIVE_STATUSES,
    DetectedPattern,
    PatternStatus,
    PatternType,
)
from patternlens.db.repositories.insight import InsightRepository
from patternlens.db.repositories.pattern import PatternRepository
from patternlens.detection.types import DetectorOutput, PatternCandidate
from patternlens.insights.cache import invalidate_if_changed
from patternlens.observability.metrics import record_transition
from patternlens.utils.geo import haversine_km
from patternlens.utils.stats import clamp_unit
from patternlens.utils.timeutils import utc_now

logger = get_logger(__name__)

SPATIAL_TYPES = frozenset({PatternType.GEOGRAPHIC_CLUSTER.value, PatternType.FLAP_WAVE.value})
_LIVE = frozenset(s.value for s in LIVE_STATUSES)


@dataclass(frozen=True)
class Transition:
    """One status change of one pattern."""

    pattern_id: UUID
    pattern_type: str
    from_status: str | None
    to_status: str

    def to_dict(self) -> dict[str, str | None]:
        return {
            "pattern_id": str(self.pattern_id),
            "pattern_type": self.pattern_type,
            "from": self.from_status,
            "to": self.to_status,
        }


@dataclass
class ReconcileOutcome:
    """What a reconciliation pass changed."""

    created: int = 0
    updated: int = 0
    archived: int = 0
    skipped: int = 0
    invalidated: int = 0
    transitions: list[Transition] = field(default_factory=list)

    def merge(self, other: "ReconcileOutcome") -> None:
        self.created += other.created
        self.updated += other.updated
        self.archived += other.archived
        self.skipped += other.skipped
        self.invalidated += other.invalidated
        self.transitions.extend(other.transitions)


class PatternLifecycleManager:
    """Merges detector output into ``detected_patterns``."""

    def __init__(
        self,
        db: AsyncSession,
        config: LifecycleConfig | None = None,
        now: datetime | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            db: Session of the analysis run; the manager flushes, never commits.
            config: Lifecycle thresholds.
            now: Timestamp applied to every write of this pass.
        """
        self.db = db
        self.config = config or get_settings().lifecycle
        self.now = now or utc_now()
        self.patterns = PatternRepository(db)
        self.insights = InsightRepository(db)

    async def reconcile(
        self,
        outputs: Sequence[DetectorOutput],
        run_id: UUID | None,
        evaluated_types: Iterable[str],
    ) -> ReconcileOutcome:
        """Create, update and age patterns from one run's detector output.

        Args:
            outputs: Detector outputs of the run
            run_id: The analysis run doing the reconciliation
            evaluated_types: Pattern types whose detector actually ran; only
                these are aged when a pattern is not re-detected

        Raises:
            PersistenceError: If a write fails
        """
        outcome = ReconcileOutcome()
        try:
            for pattern_type in sorted(set(evaluated_types)):
                candidates = [
                    c for o in outputs if o.pattern_type == pattern_type for c in o.candidates
                ]
                outcome.merge(await self._reconcile_type(pattern_type, candidates, run_id))
            await self.db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(str(e), "reconcile") from e

        logger.info(
            "Patterns reconciled",
            created=outcome.created,
            updated=outcome.updated,
            archived=outcome.archived,
            skipped=outcome.skipped,
        )
        return outcome

    async def archive_stale(self) -> ReconcileOutcome:
        """Move live patterns untouched for ``archive_after_days`` to historical.

        Raises:
            PersistenceError: If a write fails
        """
        outcome = ReconcileOutcome()
        cutoff = self.now - timedelta(days=self.config.archive_after_days)
        try:
            for pattern in await self.patterns.untouched_since(cutoff):
                self._set_status(pattern, PatternStatus.HISTORICAL, outcome)
                pattern.consecutive_detections = 0
                pattern.last_updated_at = self.now
            await self.db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(str(e), "archive_stale") from e

        if outcome.archived:
            logger.info("Stale patterns archived", archived=outcome.archived)
        return outcome

    # -------------------------------------------------------------------------
    # Per-type reconciliation
    # -------------------------------------------------------------------------

    async def _reconcile_type(
        self,
        pattern_type: str,
        candidates: Sequence[PatternCandidate],
        run_id: UUID | None,
    ) -> ReconcileOutcome:
        outcome = ReconcileOutcome()
        existing = await self.patterns.find_by_type(pattern_type)
        claimed: set[UUID] = set()

        ordered = sorted(candidates, key=lambda c: -c.significance_score)
        for candidate in ordered:
            if not self._qualifies(candidate):
                outcome.skipped += 1
                continue

            match = self._match(candidate, existing, claimed)
            if match is None:
                await self._create(candidate, run_id, outcome)
            else:
                claimed.add(match.pattern_id)
                await self._update(match, candidate, run_id, outcome)

        for pattern in existing:
            if pattern.pattern_id not in claimed and pattern.status in _LIVE:
                self._miss(pattern, outcome)

        return outcome

    def _qualifies(self, candidate: PatternCandidate) -> bool:
        return (
            candidate.report_count >= self.config.min_pattern_reports
            and candidate.significance_score >= self.config.min_significance
        )

    def _match(
        self,
        candidate: PatternCandidate,
        existing: Sequence[DetectedPattern],
        claimed: set[UUID],
    ) -> DetectedPattern | None:
        """Find the persisted pattern a candidate continues, if any."""
        available = [p for p in existing if p.pattern_id not in claimed]

        if candidate.pattern_type in SPATIAL_TYPES:
            if not candidate.has_center or candidate.match_radius_km is None:
                return None
            best: tuple[float, DetectedPattern] | None = None
            for pattern in available:
                if pattern.center_lat is None or pattern.center_lng is None:
                    continue
                distance = haversine_km(
                    candidate.center_lat,  # type: ignore[arg-type]
                    candidate.center_lng,  # type: ignore[arg-type]
                    pattern.center_lat,
                    pattern.center_lng,
                )
                if distance <= candidate.match_radius_km and (best is None or distance < best[0]):
                    best = (distance, pattern)
            return best[1] if best else None

        if candidate.pattern_type == PatternType.TEMPORAL_ANOMALY.value:
            for pattern in available:
                if pattern.pattern_start_date == candidate.start_date:
                    return pattern
            return None

        if candidate.pattern_type == PatternType.SEASONAL_PATTERN.value:
            month = candidate.metadata_dict().get("month")
            for pattern in available:
                if (pattern.pattern_metadata or {}).get("month") == month:
                    return pattern
            return None

        return None

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def _apply_candidate(self, pattern: DetectedPattern, candidate: PatternCandidate) -> None:
        pattern.confidence_score = clamp_unit(candidate.confidence_score)
        pattern.significance_score = clamp_unit(candidate.significance_score)
        pattern.report_count = candidate.report_count
        pattern.center_lat = candidate.center_lat
        pattern.center_lng = candidate.center_lng
        pattern.radius_km = candidate.radius_km
        pattern.pattern_start_date = candidate.start_date
        pattern.pattern_end_date = candidate.end_date
        pattern.pattern_metadata = candidate.metadata_dict()
        pattern.categories = sorted(set(candidate.categories))
        pattern.last_updated_at = self.now

    async def _create(
        self,
        candidate: PatternCandidate,
        run_id: UUID | None,
        outcome: ReconcileOutcome,
    ) -> DetectedPattern:
        pattern = DetectedPattern(
            pattern_type=candidate.pattern_type,
            status=PatternStatus.EMERGING.value,
            first_detected_at=self.now,
            consecutive_detections=1,
            stagnant_runs=0,
            last_run_id=run_id,
        )
        self._apply_candidate(pattern, candidate)
        await self.patterns.create(pattern, commit=False)
        await self.patterns.replace_links(pattern.pattern_id, candidate.members, self.now)

        outcome.created += 1
        outcome.transitions.append(
            Transition(pattern.pattern_id, pattern.pattern_type, None, pattern.status)
        )
        record_transition(pattern.pattern_type, "new", pattern.status)
        return pattern

    async def _update(
        self,
        pattern: DetectedPattern,
        candidate: PatternCandidate,
        run_id: UUID | None,
        outcome: ReconcileOutcome,
    ) -> None:
        prev_significance = pattern.significance_score
        prev_count = pattern.report_count
        new_significance = clamp_unit(candidate.significance_score)
        new_count = candidate.report_count

        stable = new_significance >= prev_significance * (1 - self.config.stability_tolerance)
        grew = new_significance > prev_significance or new_count > prev_count
        declined = new_significance < prev_significance * (
            1 - self.config.decline_ratio
        ) or new_count < prev_count * (1 - self.config.decline_ratio)

        pattern.previous_significance_score = prev_significance
        pattern.previous_report_count = prev_count
        pattern.consecutive_detections += 1
        pattern.stagnant_runs = 0 if grew else pattern.stagnant_runs + 1
        pattern.last_run_id = run_id
        self._apply_candidate(pattern, candidate)

        status = PatternStatus(pattern.status)
        if status == PatternStatus.EMERGING:
            if not stable:
                pattern.consecutive_detections = 1
            elif pattern.consecutive_detections >= 2:
                self._set_status(pattern, PatternStatus.ACTIVE, outcome)
        elif status == PatternStatus.ACTIVE:
            if declined:
                self._set_status(pattern, PatternStatus.DECLINING, outcome)
                pattern.stagnant_runs = 0
        elif status == PatternStatus.DECLINING:
            if grew and not declined:
                self._set_status(pattern, PatternStatus.ACTIVE, outcome)
            elif pattern.stagnant_runs >= self.config.max_stagnant_runs:
                self._set_status(pattern, PatternStatus.HISTORICAL, outcome)
        elif status == PatternStatus.HISTORICAL:
            if stable:
                self._set_status(pattern, PatternStatus.ACTIVE, outcome)

        await self.patterns.replace_links(pattern.pattern_id, candidate.members, self.now)
        if await invalidate_if_changed(self.insights, pattern):
            outcome.invalidated += 1
        outcome.updated += 1

    def _miss(self, pattern: DetectedPattern, outcome: ReconcileOutcome) -> None:
        """Age a live pattern that the run did not re-detect."""
        status = PatternStatus(pattern.status)
        if status == PatternStatus.ACTIVE:
            self._set_status(pattern, PatternStatus.DECLINING, outcome)
            pattern.stagnant_runs = 0
        else:
            self._set_status(pattern, PatternStatus.HISTORICAL, outcome)
        pattern.consecutive_detections = 0
        pattern.last_updated_at = self.now

    def _set_status(
        self,
        pattern: DetectedPattern,
        status: PatternStatus,
        outcome: ReconcileOutcome,
    ) -> None:
        previous = pattern.status
        if previous == status.value:
            return
        pattern.status = status.value
        outcome.transitions.append(
            Transition(pattern.pattern_id, pattern.pattern_type, previous, status.value)
        )
        if status == PatternStatus.HISTORICAL:
            outcome.archived += 1
        record_transition(pattern.pattern_type, previous, status.value)
        logger.debug(
            "Pattern status changed",
            pattern_id=str(pattern.pattern_id),
            pattern_type=pattern.pattern_type,
            from_status=previous,
            to_status=status.value,
        )
