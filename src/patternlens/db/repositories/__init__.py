"""Database repositories for clean data access."""

from .analysis_run import AnalysisRunRepository
from .base import BaseRepository
from .insight import InsightRepository
from .pattern import PatternRepository
from .report import ReportRepository

__all__ = [
    "AnalysisRunRepository",
    "BaseRepository",
    "InsightRepository",
    "PatternRepository",
    "ReportRepository",
]
