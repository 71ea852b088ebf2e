"""Pattern lifecycle and read service."""

from patternlens.patterns.lifecycle import (
    SPATIAL_TYPES,
    PatternLifecycleManager,
    ReconcileOutcome,
    Transition,
)
from patternlens.patterns.service import InsightView, NearbyPattern, PatternService

__all__ = [
    "SPATIAL_TYPES",
    "InsightView",
    "NearbyPattern",
    "PatternLifecycleManager",
    "PatternService",
    "ReconcileOutcome",
    "Transition",
]
