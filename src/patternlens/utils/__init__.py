"""Utility modules for PatternLens."""

from patternlens.utils.exceptions import (
    ConfigurationError,
    ModelError,
    PatternLensError,
)

__all__ = [
    "PatternLensError",
    "ModelError",
    "ConfigurationError",
]
