"""Parsing of generated narratives and the deterministic fallbacks."""

import hashlib
import json
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from patternlens.core.exceptions import ExternalServiceError
from patternlens.db.models.pattern import DetectedPattern
from patternlens.insights.prompts import TYPE_TITLES

TITLE_MAX = 200
SUMMARY_MAX = 500

_TITLE_RE = re.compile(r"TITLE:\s*(.+?)(?:\n|SUMMARY:)", re.DOTALL)
_SUMMARY_RE = re.compile(r"SUMMARY:\s*(.+?)(?:\n|NARRATIVE:)", re.DOTALL)
_NARRATIVE_RE = re.compile(r"NARRATIVE:\s*(.+)", re.DOTALL)


@dataclass(frozen=True)
class ParsedInsight:
    """Title, summary and narrative extracted from generated text."""

    title: str
    summary: str
    narrative: str


def _humanize(pattern_type: str) -> str:
    return pattern_type.replace("_", " ")


def default_title(pattern: DetectedPattern) -> str:
    name = TYPE_TITLES.get(pattern.pattern_type, _humanize(pattern.pattern_type).title())
    return f"{name} - {pattern.report_count} Reports"


def default_summary(pattern: DetectedPattern) -> str:
    return (
        f"{pattern.status.capitalize()} {_humanize(pattern.pattern_type)} "
        f"with {pattern.report_count} associated reports."
    )


def fallback_insight(pattern: DetectedPattern) -> ParsedInsight:
    """Templated insight built only from the pattern's own fields."""
    narrative = (
        f"This {_humanize(pattern.pattern_type)} encompasses {pattern.report_count} "
        f"reports with a significance score of {pattern.significance_score * 100:.1f}% "
        f"and a confidence score of {pattern.confidence_score * 100:.1f}%."
    )
    if pattern.center_lat is not None and pattern.center_lng is not None:
        narrative += (
            f" It is centred on {pattern.center_lat:.4f}, {pattern.center_lng:.4f}"
            + (f" within {pattern.radius_km:.1f} km." if pattern.radius_km else ".")
        )
    narrative += " A detailed narrative is temporarily unavailable."
    return ParsedInsight(
        title=default_title(pattern),
        summary=default_summary(pattern),
        narrative=narrative,
    )


def parse_insight_response(text: str, pattern: DetectedPattern) -> ParsedInsight:
    """Split ``TITLE:/SUMMARY:/NARRATIVE:`` text into its parts.

    Missing title or summary sections fall back to the templated values; a
    missing narrative section keeps the whole text as the narrative.

    Raises:
        ExternalServiceError: If the text is empty or carries none of the
            three section markers
    """
    body = (text or "").strip()
    title_match = _TITLE_RE.search(body)
    summary_match = _SUMMARY_RE.search(body)
    narrative_match = _NARRATIVE_RE.search(body)

    if not body or not (title_match or summary_match or narrative_match):
        raise ExternalServiceError("Narrative response does not follow the expected format")

    title = title_match.group(1).strip() if title_match else ""
    summary = summary_match.group(1).strip() if summary_match else ""
    narrative = narrative_match.group(1).strip() if narrative_match else body

    return ParsedInsight(
        title=(title or default_title(pattern))[:TITLE_MAX],
        summary=(summary or default_summary(pattern))[:SUMMARY_MAX],
        narrative=narrative,
    )


def fallback_digest(patterns: Sequence[DetectedPattern]) -> str:
    """Templated digest listing the patterns' headline numbers."""
    lines = [f"{len(patterns)} significant patterns are currently active or emerging."]
    for pattern in patterns:
        title = pattern.ai_title or default_title(pattern)
        lines.append(
            f"- {title}: {pattern.report_count} reports, "
            f"significance {pattern.significance_score * 100:.1f}% ({pattern.status})"
        )
    return "\n".join(lines)


def compute_source_hash(pattern: DetectedPattern) -> str:
    """Content hash of the statistics a narrative is based on."""
    relevant: dict[str, Any] = {
        "report_count": pattern.report_count,
        "confidence_score": pattern.confidence_score,
        "significance_score": pattern.significance_score,
        "metadata": pattern.pattern_metadata or {},
    }
    encoded = json.dumps(relevant, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()
