"""Narrative generator interface and model adapters."""

from patternlens.models.base import ModelResponse, NarrativeGenerator
from patternlens.models.registry import get_narrative_generator

__all__ = [
    "ModelResponse",
    "NarrativeGenerator",
    "get_narrative_generator",
]
