"""Database models for PatternLens."""

from .analysis_run import AnalysisRun, RunStatus, RunType
from .base import Base, PortableJSON, PortableUUID, UTCDateTime
from .insight import InsightType, PatternInsight
from .pattern import (
    LIVE_STATUSES,
    DetectedPattern,
    PatternReportLink,
    PatternStatus,
    PatternType,
)
from .report import Report, ReportStatus

__all__ = [
    "Base",
    "PortableJSON",
    "PortableUUID",
    "UTCDateTime",
    "Report",
    "ReportStatus",
    "DetectedPattern",
    "PatternReportLink",
    "PatternType",
    "PatternStatus",
    "LIVE_STATUSES",
    "PatternInsight",
    "InsightType",
    "AnalysisRun",
    "RunType",
    "RunStatus",
]
