"""Insight cache with content-hash invalidation.

Narratives are generated lazily on the first request for a pattern and
served from ``pattern_insights`` until they expire or are flagged stale.
Lookups and generations for one pattern run in a single shared task, so
concurrent requests cause at most one narrative generator call; the task
owns its database session so a cancelled caller does not abort it.
"""

import asyncio
import hashlib
import time
from collections.abc import Callable
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from patternlens.config.settings import InsightConfig, get_settings
from patternlens.core.exceptions import ExternalServiceError, PatternNotFoundError
from patternlens.core.logging import get_logger, log_external_call
from patternlens.db.models.insight import InsightType, PatternInsight
from patternlens.db.models.pattern import DetectedPattern
from patternlens.db.repositories.insight import InsightRepository
from patternlens.db.repositories.pattern import PatternRepository
from patternlens.insights.parser import (
    SUMMARY_MAX,
    ParsedInsight,
    compute_source_hash,
    fallback_digest,
    fallback_insight,
    parse_insight_response,
)
from patternlens.insights.prompts import build_digest_prompt, build_pattern_prompt
from patternlens.models.base import NarrativeGenerator
from patternlens.observability.metrics import observe_generation, record_insight_request
from patternlens.utils.exceptions import ConfigurationError
from patternlens.utils.timeutils import utc_now

logger = get_logger(__name__)

FALLBACK_MODEL = "fallback-template"

# Per-process registry of in-flight lookups, keyed by pattern id
_in_flight: dict[UUID, asyncio.Task[PatternInsight]] = {}


def in_flight_count() -> int:
    """Number of pattern lookups currently running."""
    return len(_in_flight)


async def invalidate_if_changed(insights: InsightRepository, pattern: DetectedPattern) -> bool:
    """Flag a pattern's insights stale when its statistics changed.

    Runs inside the caller's transaction; nothing is committed.

    Returns:
        True if insights were flagged
    """
    latest = await insights.latest_narrative(pattern.pattern_id)
    if latest is None or latest.is_stale:
        return False
    if latest.source_data_hash == compute_source_hash(pattern):
        return False

    flagged = await insights.mark_stale(pattern.pattern_id)
    logger.info("Insights invalidated", pattern_id=str(pattern.pattern_id), flagged=flagged)
    return True


class InsightCache:
    """Serves cached narratives and generates them on a miss."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        generator: NarrativeGenerator | None = None,
        config: InsightConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the cache.

        Args:
            session_factory: Factory for the sessions the cache works in.
            generator: Narrative generator; resolved from settings when omitted.
            config: Cache and generation settings.
            clock: Source of the current time.
        """
        self._session_factory = session_factory
        self._generator = generator
        self._generator_resolved = generator is not None
        self.config = config or get_settings().insights
        self._clock = clock

    @property
    def generator(self) -> NarrativeGenerator | None:
        """Narrative generator, or None when no provider is configured."""
        if not self._generator_resolved:
            from patternlens.models.registry import get_narrative_generator

            try:
                self._generator = get_narrative_generator()
            except ConfigurationError as e:
                logger.warning("Narrative generator unavailable, using fallbacks", error=str(e))
            self._generator_resolved = True
        return self._generator

    # -------------------------------------------------------------------------
    # Pattern narratives
    # -------------------------------------------------------------------------

    async def get_or_generate(self, pattern_id: UUID) -> PatternInsight:
        """Return a fresh narrative for a pattern, generating it on a miss.

        Raises:
            PatternNotFoundError: If the pattern does not exist
        """
        task = _in_flight.get(pattern_id)
        if task is None:
            task = asyncio.create_task(self._resolve(pattern_id))
            _in_flight[pattern_id] = task
            task.add_done_callback(lambda t, key=pattern_id: _release(key, t))
        else:
            logger.debug("Joining in-flight insight lookup", pattern_id=str(pattern_id))
        return await asyncio.shield(task)

    async def _resolve(self, pattern_id: UUID) -> PatternInsight:
        async with self._session_factory() as session:
            insights = InsightRepository(session)
            now = self._clock()

            cached = await insights.get_valid_narrative(pattern_id, now)
            if cached is not None:
                record_insight_request(InsightType.PATTERN_NARRATIVE.value, "hit")
                return cached

            pattern = await PatternRepository(session).get(pattern_id)
            if pattern is None:
                raise PatternNotFoundError(pattern_id)

            parsed, model_used, is_fallback = await self._narrate(pattern)
            insight = PatternInsight(
                pattern_id=pattern.pattern_id,
                insight_type=InsightType.PATTERN_NARRATIVE.value,
                title=parsed.title,
                content=parsed.narrative,
                summary=parsed.summary,
                model_used=model_used,
                source_data_hash=compute_source_hash(pattern),
                is_fallback=is_fallback,
                is_stale=False,
                generated_at=now,
                valid_until=now + timedelta(hours=self.config.cache_validity_hours),
            )
            session.add(insight)

            pattern.ai_title = parsed.title
            pattern.ai_summary = parsed.summary
            pattern.ai_narrative = parsed.narrative
            pattern.ai_narrative_generated_at = now

            await session.commit()
            await session.refresh(insight)

            record_insight_request(
                InsightType.PATTERN_NARRATIVE.value, "fallback" if is_fallback else "generated"
            )
            logger.info(
                "Insight stored",
                pattern_id=str(pattern_id),
                model=model_used,
                fallback=is_fallback,
            )
            return insight

    async def _narrate(self, pattern: DetectedPattern) -> tuple[ParsedInsight, str, bool]:
        generator = self.generator
        if generator is None:
            return fallback_insight(pattern), FALLBACK_MODEL, True

        try:
            text = await self._call_generator(
                generator, build_pattern_prompt(pattern), self.config.max_tokens
            )
            parsed = parse_insight_response(text, pattern)
        except ExternalServiceError as e:
            logger.warning(
                "Narrative generation failed, using fallback",
                pattern_id=str(pattern.pattern_id),
                error=str(e),
            )
            return fallback_insight(pattern), FALLBACK_MODEL, True

        return parsed, generator.model_name, False

    async def _call_generator(
        self,
        generator: NarrativeGenerator,
        prompt: str,
        max_tokens: int,
    ) -> str:
        """Invoke the generator under the configured timeout.

        Raises:
            ExternalServiceError: On any generator failure or timeout
        """
        start = time.perf_counter()
        success = False
        try:
            with observe_generation():
                text = await asyncio.wait_for(
                    generator.generate(prompt, max_tokens),
                    timeout=self.config.generation_timeout_seconds,
                )
            success = True
            return text
        except TimeoutError as e:
            raise ExternalServiceError(
                f"Narrative generation timed out after {self.config.generation_timeout_seconds}s"
            ) from e
        except ExternalServiceError:
            raise
        except Exception as e:
            raise ExternalServiceError(f"Narrative generation failed: {e}") from e
        finally:
            log_external_call(
                logger,
                service=generator.model_name,
                operation="generate",
                duration_ms=(time.perf_counter() - start) * 1000,
                success=success,
            )

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    async def mark_stale(self, pattern_id: UUID) -> int:
        """Flag every cached insight of a pattern stale.

        Returns:
            Number of insights flagged
        """
        async with self._session_factory() as session:
            flagged = await InsightRepository(session).mark_stale(pattern_id)
            await session.commit()
        logger.info("Insights marked stale", pattern_id=str(pattern_id), flagged=flagged)
        return flagged

    async def invalidate_if_changed(self, pattern: DetectedPattern) -> bool:
        """Flag a pattern's insights stale if its content hash changed."""
        async with self._session_factory() as session:
            changed = await invalidate_if_changed(InsightRepository(session), pattern)
            await session.commit()
        return changed

    # -------------------------------------------------------------------------
    # Weekly digest
    # -------------------------------------------------------------------------

    async def generate_digest(self, limit: int | None = None) -> PatternInsight | None:
        """Summarise the most significant live patterns in one insight.

        Returns:
            The stored digest, or None when no pattern is active or emerging
        """
        limit = limit or self.config.digest_pattern_limit
        async with self._session_factory() as session:
            patterns = await PatternRepository(session).trending(limit)
            if not patterns:
                logger.info("No patterns for weekly digest")
                return None

            now = self._clock()
            content, model_used, is_fallback = await self._digest_content(patterns)

            insight = PatternInsight(
                pattern_id=None,
                insight_type=InsightType.WEEKLY_DIGEST.value,
                title=f"Weekly Pattern Digest - {now.date().isoformat()}",
                content=content,
                summary=content[:SUMMARY_MAX],
                model_used=model_used,
                source_data_hash=_digest_hash(patterns),
                is_fallback=is_fallback,
                is_stale=False,
                generated_at=now,
                valid_until=now + timedelta(days=self.config.digest_validity_days),
            )
            session.add(insight)
            await session.commit()
            await session.refresh(insight)

        record_insight_request(
            InsightType.WEEKLY_DIGEST.value, "fallback" if is_fallback else "generated"
        )
        logger.info("Weekly digest stored", patterns=len(patterns), fallback=is_fallback)
        return insight

    async def _digest_content(self, patterns: list[DetectedPattern]) -> tuple[str, str, bool]:
        generator = self.generator
        if generator is None:
            return fallback_digest(patterns), FALLBACK_MODEL, True

        try:
            text = await self._call_generator(
                generator, build_digest_prompt(patterns), self.config.digest_max_tokens
            )
        except ExternalServiceError as e:
            logger.warning("Digest generation failed, using fallback", error=str(e))
            return fallback_digest(patterns), FALLBACK_MODEL, True

        if not text.strip():
            logger.warning("Digest generation returned no text, using fallback")
            return fallback_digest(patterns), FALLBACK_MODEL, True
        return text.strip(), generator.model_name, False

    async def get_latest_digest(self) -> PatternInsight | None:
        """The newest weekly digest that is still valid."""
        async with self._session_factory() as session:
            digest = await InsightRepository(session).latest_digest(self._clock())
        if digest is not None:
            record_insight_request(InsightType.WEEKLY_DIGEST.value, "hit")
        return digest


def _release(pattern_id: UUID, task: asyncio.Task[PatternInsight]) -> None:
    if _in_flight.get(pattern_id) is task:
        del _in_flight[pattern_id]


def _digest_hash(patterns: list[DetectedPattern]) -> str:
    joined = "|".join(f"{p.pattern_id}:{compute_source_hash(p)}" for p in patterns)
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()
