"""Narrative insights: prompts, parsing and the insight cache."""

from patternlens.insights.cache import (
    FALLBACK_MODEL,
    InsightCache,
    in_flight_count,
    invalidate_if_changed,
)
from patternlens.insights.parser import (
    ParsedInsight,
    compute_source_hash,
    fallback_digest,
    fallback_insight,
    parse_insight_response,
)
from patternlens.insights.prompts import (
    SYSTEM_PROMPT,
    build_digest_prompt,
    build_pattern_prompt,
)

__all__ = [
    "FALLBACK_MODEL",
    "InsightCache",
    "ParsedInsight",
    "SYSTEM_PROMPT",
    "build_digest_prompt",
    "build_pattern_prompt",
    "compute_source_hash",
    "fallback_digest",
    "fallback_insight",
    "in_flight_count",
    "invalidate_if_changed",
    "parse_insight_response",
]
