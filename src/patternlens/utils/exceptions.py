"""Custom exceptions for PatternLens."""


class PatternLensError(Exception):
    """Base exception for all PatternLens errors."""

    pass


class ModelError(PatternLensError):
    """Error related to narrative model operations."""

    pass


class ConfigurationError(PatternLensError):
    """Error in configuration or settings."""

    pass
