"""Descriptive statistics used by the detectors."""

import math
from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class ZScoreResult:
    """Outcome of comparing one observation against a baseline."""

    value: float
    mean: float
    std_deviation: float
    z_score: float
    defined: bool
    """False when the baseline has no spread and the score is forced to 0."""


def mean(values: Sequence[float]) -> float:
    if not values:
        raise ValueError("mean of an empty sequence")
    return sum(values) / len(values)


def variance(values: Sequence[float]) -> float:
    """Population variance (divides by n)."""
    mu = mean(values)
    return sum((v - mu) ** 2 for v in values) / len(values)


def std_deviation(values: Sequence[float]) -> float:
    """Population standard deviation."""
    return math.sqrt(variance(values))


def z_score(value: float, baseline: Sequence[float]) -> ZScoreResult:
    """Standard score of ``value`` against ``baseline``.

    A zero standard deviation leaves the score undefined; it is reported as 0
    with ``defined=False`` so callers can suppress classification.
    """
    mu = mean(baseline)
    sigma = std_deviation(baseline)
    if sigma == 0:
        return ZScoreResult(value=value, mean=mu, std_deviation=0.0, z_score=0.0, defined=False)
    return ZScoreResult(
        value=value,
        mean=mu,
        std_deviation=sigma,
        z_score=(value - mu) / sigma,
        defined=True,
    )


def seasonal_indices(counts: Sequence[int]) -> list[float]:
    """Each count divided by the average of all counts.

    An all-zero series has no seasonality; every index is neutral (1.0).
    """
    if not counts:
        return []
    average = sum(counts) / len(counts)
    if average == 0:
        return [1.0] * len(counts)
    return [c / average for c in counts]


def clamp_unit(value: float) -> float:
    """Clamp into [0, 1], mapping NaN to 0."""
    if math.isnan(value):
        return 0.0
    return min(1.0, max(0.0, value))
