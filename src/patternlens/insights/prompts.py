"""Prompt construction for pattern narratives and weekly digests."""

import json
from collections.abc import Sequence

from patternlens.db.models.pattern import DetectedPattern

SYSTEM_PROMPT = (
    "You are an analyst of anomalous-phenomena report data. Describe detected "
    "patterns objectively, cite the figures you are given, weigh mundane "
    "explanations alongside unusual ones and state uncertainty plainly."
)

TYPE_DESCRIPTIONS: dict[str, str] = {
    "geographic_cluster": "geographic cluster of reports",
    "temporal_anomaly": "unusual week of report activity",
    "flap_wave": "wave of reports spreading across a region",
    "characteristic_correlation": "correlation between report characteristics",
    "regional_concentration": "unusual concentration of reports in a region",
    "seasonal_pattern": "seasonal pattern in report frequency",
    "time_of_day_pattern": "pattern related to time of day",
    "date_correlation": "pattern related to specific dates",
}

TYPE_TITLES: dict[str, str] = {
    "geographic_cluster": "Geographic Cluster",
    "temporal_anomaly": "Temporal Anomaly",
    "flap_wave": "Wave Event",
    "characteristic_correlation": "Characteristic Correlation",
    "regional_concentration": "Regional Hotspot",
    "seasonal_pattern": "Seasonal Pattern",
    "time_of_day_pattern": "Time Pattern",
    "date_correlation": "Date Correlation",
}

RESPONSE_FORMAT = """Please provide:
1. A concise title (max 100 characters)
2. A brief summary (max 200 characters)
3. A narrative analysis of 2-3 paragraphs covering what the pattern
   indicates, plausible explanations and what researchers should check next

Format your response as:
TITLE: [your title]
SUMMARY: [your summary]
NARRATIVE: [your detailed analysis]"""


def _percent(score: float) -> str:
    return f"{score * 100:.1f}%"


def build_pattern_prompt(pattern: DetectedPattern) -> str:
    """Render the narrative prompt for one pattern."""
    description = TYPE_DESCRIPTIONS.get(pattern.pattern_type, pattern.pattern_type)
    lines = [
        f"Analyze this {description}:",
        "",
        f"Pattern Type: {pattern.pattern_type}",
        f"Status: {pattern.status}",
        f"Report Count: {pattern.report_count}",
        f"Confidence Score: {_percent(pattern.confidence_score)}",
        f"Significance Score: {_percent(pattern.significance_score)}",
    ]
    if pattern.center_lat is not None and pattern.center_lng is not None:
        lines.append(f"Location: {pattern.center_lat:.4f}, {pattern.center_lng:.4f}")
    if pattern.radius_km:
        lines.append(f"Radius: {pattern.radius_km:.1f} km")
    if pattern.pattern_start_date is not None:
        end = pattern.pattern_end_date or pattern.pattern_start_date
        lines.append(f"Date Range: {pattern.pattern_start_date.isoformat()} to {end.isoformat()}")
    if pattern.categories:
        lines.append(f"Categories: {', '.join(pattern.categories)}")

    lines.extend(
        [
            "",
            "Metadata:",
            json.dumps(pattern.pattern_metadata or {}, indent=2, sort_keys=True),
            "",
            RESPONSE_FORMAT,
        ]
    )
    return "\n".join(lines)


def build_digest_prompt(patterns: Sequence[DetectedPattern]) -> str:
    """Render one prompt covering several patterns."""
    lines = [f"Generate a weekly digest summarizing these {len(patterns)} active patterns:", ""]
    for position, pattern in enumerate(patterns, start=1):
        lines.append(f"Pattern {position}:")
        lines.append(f"- Type: {pattern.pattern_type}")
        lines.append(f"- Status: {pattern.status}")
        lines.append(f"- Reports: {pattern.report_count}")
        lines.append(f"- Significance: {_percent(pattern.significance_score)}")
        if pattern.ai_title:
            lines.append(f"- Title: {pattern.ai_title}")
        lines.append("")

    lines.append(
        "Write a cohesive weekly digest of 3-4 paragraphs that opens with the most "
        "significant findings, connects related patterns, notes emerging trends and "
        "ends with what researchers should watch for."
    )
    return "\n".join(lines)
