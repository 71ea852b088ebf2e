"""Pattern detectors.

Each detector is a pure function of an immutable report snapshot and a
reference date, so the orchestrator can run them in parallel threads.
"""

from patternlens.config.settings import DetectionConfig
from patternlens.detection.clustering import (
    ClusterDetector,
    ClusterDetectorConfig,
    create_cluster_detector,
    dbscan,
    detect_geographic_clusters,
)
from patternlens.detection.flap_wave import (
    FlapWave,
    FlapWaveDetector,
    FlapWaveDetectorConfig,
    create_flap_wave_detector,
    detect_flap_waves,
)
from patternlens.detection.metadata import (
    FlapWaveMetadata,
    GenericPatternMetadata,
    GeographicClusterMetadata,
    PatternMetadata,
    SeasonalPatternMetadata,
    TemporalAnomalyMetadata,
    dump_metadata,
    parse_metadata,
)
from patternlens.detection.seasonal import (
    SeasonalAnalyzer,
    SeasonalAnalyzerConfig,
    classify_season,
    create_seasonal_analyzer,
    seasonal_index,
)
from patternlens.detection.temporal import (
    TemporalAnomalyDetector,
    TemporalDetectorConfig,
    analyze_latest_week,
    create_temporal_detector,
    weekly_report_counts,
)
from patternlens.detection.types import (
    AnomalyKind,
    DetectorOutput,
    GeographicCluster,
    MonthlySeasonality,
    PatternCandidate,
    ReportPoint,
    SeasonClass,
    WeeklyAnomaly,
    WeeklyCount,
)

Detector = ClusterDetector | TemporalAnomalyDetector | SeasonalAnalyzer | FlapWaveDetector


def build_detectors(config: DetectionConfig) -> list[Detector]:
    """All detectors, configured from application settings."""
    return [
        create_cluster_detector(
            ClusterDetectorConfig(
                eps_km=config.cluster_eps_km,
                min_points=config.cluster_min_points,
                days_back=config.cluster_days_back,
            )
        ),
        create_temporal_detector(
            TemporalDetectorConfig(
                weeks_back=config.temporal_weeks_back,
                z_threshold=config.temporal_z_threshold,
                min_history_weeks=config.temporal_min_history_weeks,
            )
        ),
        create_seasonal_analyzer(
            SeasonalAnalyzerConfig(
                years_back=config.seasonal_years_back,
                min_total_reports=config.seasonal_min_total_reports,
                peak_index=config.seasonal_peak_index,
                low_index=config.seasonal_low_index,
            )
        ),
        create_flap_wave_detector(
            FlapWaveDetectorConfig(
                eps_km=config.wave_eps_km,
                window_days=config.wave_window_days,
                min_points=config.wave_min_points,
                days_back=config.wave_days_back,
                min_duration_days=config.wave_min_duration_days,
                min_spread_km=config.wave_min_spread_km,
            )
        ),
    ]


__all__ = [
    # Types
    "AnomalyKind",
    "DetectorOutput",
    "GeographicCluster",
    "MonthlySeasonality",
    "PatternCandidate",
    "ReportPoint",
    "SeasonClass",
    "WeeklyAnomaly",
    "WeeklyCount",
    # Metadata
    "FlapWaveMetadata",
    "GenericPatternMetadata",
    "GeographicClusterMetadata",
    "PatternMetadata",
    "SeasonalPatternMetadata",
    "TemporalAnomalyMetadata",
    "dump_metadata",
    "parse_metadata",
    # Clustering
    "ClusterDetector",
    "ClusterDetectorConfig",
    "create_cluster_detector",
    "dbscan",
    "detect_geographic_clusters",
    # Temporal
    "TemporalAnomalyDetector",
    "TemporalDetectorConfig",
    "analyze_latest_week",
    "create_temporal_detector",
    "weekly_report_counts",
    # Seasonal
    "SeasonalAnalyzer",
    "SeasonalAnalyzerConfig",
    "classify_season",
    "create_seasonal_analyzer",
    "seasonal_index",
    # Flap waves
    "FlapWave",
    "FlapWaveDetector",
    "FlapWaveDetectorConfig",
    "create_flap_wave_detector",
    "detect_flap_waves",
    # Factory
    "Detector",
    "build_detectors",
]
