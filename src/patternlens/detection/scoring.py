"""Confidence and significance scoring for detector findings.

Every score is a weighted blend of saturating ratios, so results always
land in [0, 1]. Confidence expresses how certain the finding is; significance
how notable it is relative to the rest of the corpus.
"""

from patternlens.utils.stats import clamp_unit

SEASONAL_CONFIDENCE = 0.8


def _ratio(value: float, saturation: float) -> float:
    return clamp_unit(value / saturation)


def cluster_confidence(report_count: int, density: float) -> float:
    """More members and a tighter footprint make a cluster more certain."""
    return clamp_unit(_ratio(report_count, 20) * 0.6 + _ratio(density, 10) * 0.4)


def cluster_significance(report_count: int, category_count: int) -> float:
    """Large clusters spanning several categories are the notable ones."""
    return clamp_unit(_ratio(report_count, 50) * 0.7 + _ratio(category_count, 5) * 0.3)


def temporal_confidence(z_score: float) -> float:
    return _ratio(abs(z_score), 5)


def temporal_significance(report_count: int, z_score: float) -> float:
    return clamp_unit(_ratio(report_count, 100) * 0.5 + _ratio(abs(z_score), 5) * 0.5)


def seasonal_significance(seasonal_index: float) -> float:
    return _ratio(abs(seasonal_index - 1.0), 2)


def wave_confidence(report_count: int, spread_km: float) -> float:
    return clamp_unit(_ratio(report_count, 20) * 0.5 + _ratio(spread_km, 100) * 0.5)


def wave_significance(report_count: int, spread_km: float) -> float:
    return clamp_unit(_ratio(report_count, 50) * 0.6 + _ratio(spread_km, 200) * 0.4)


def spatial_relevance(distance_km: float, radius_km: float) -> float:
    """Relevance of a member by its distance from the pattern centre."""
    if radius_km <= 0:
        return 1.0
    return max(0.1, clamp_unit(1.0 - distance_km / radius_km))
