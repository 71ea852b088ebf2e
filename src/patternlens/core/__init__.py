"""Core services and utilities for PatternLens."""

from .exceptions import (
    AnalysisRunInProgressError,
    DataInsufficiencyError,
    DetectionValidationError,
    ExternalServiceError,
    PatternNotFoundError,
    PersistenceError,
)
from .logging import LogContext, get_logger, setup_logging

__all__ = [
    # Exceptions
    "AnalysisRunInProgressError",
    "DataInsufficiencyError",
    "DetectionValidationError",
    "ExternalServiceError",
    "PatternNotFoundError",
    "PersistenceError",
    # Logging
    "LogContext",
    "get_logger",
    "setup_logging",
]
