"""Configuration module for PatternLens."""

from patternlens.config.settings import (
    DetectionConfig,
    InsightConfig,
    LifecycleConfig,
    ModelProvider,
    Settings,
    get_settings,
)

__all__ = [
    "Settings",
    "get_settings",
    "ModelProvider",
    "DetectionConfig",
    "LifecycleConfig",
    "InsightConfig",
]
