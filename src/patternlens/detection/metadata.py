"""Type-specific pattern metadata.

Each pattern type carries only the statistics its detector produces. The
variants form a pydantic discriminated union keyed on ``kind``, which always
equals the pattern's ``pattern_type``; the JSON column stores
``model_dump(mode="json")`` of one variant.
"""

from datetime import date
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _MetadataBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class GeographicClusterMetadata(_MetadataBase):
    """Statistics of a static spatial cluster."""

    kind: Literal["geographic_cluster"] = "geographic_cluster"
    density: float = Field(ge=0.0, description="Reports per km^2 of the bounding circle")
    eps_km: float
    min_points: int
    first_date: date | None = None
    last_date: date | None = None


class TemporalAnomalyMetadata(_MetadataBase):
    """Statistics of an unusual week."""

    kind: Literal["temporal_anomaly"] = "temporal_anomaly"
    z_score: float
    is_spike: bool
    mean_baseline: float
    std_deviation: float
    week_start: date
    category_breakdown: dict[str, int] = Field(default_factory=dict)


class SeasonalPatternMetadata(_MetadataBase):
    """Statistics of a peak or low calendar month."""

    kind: Literal["seasonal_pattern"] = "seasonal_pattern"
    month: int = Field(ge=1, le=12)
    month_name: str
    seasonal_index: float
    is_peak: bool
    top_category: str | None = None
    years_back: int


class FlapWaveMetadata(_MetadataBase):
    """Statistics of a wave of reports moving across a region."""

    kind: Literal["flap_wave"] = "flap_wave"
    origin_lat: float
    origin_lng: float
    front_lat: float
    front_lng: float
    spread_km: float
    speed_km_per_day: float
    duration_days: int
    window_days: int
    first_date: date
    last_date: date


class GenericPatternMetadata(_MetadataBase):
    """Pattern types without a dedicated detector keep free-form attributes."""

    kind: Literal[
        "characteristic_correlation",
        "regional_concentration",
        "time_of_day_pattern",
        "date_correlation",
    ]
    attributes: dict[str, Any] = Field(default_factory=dict)


PatternMetadata = Annotated[
    GeographicClusterMetadata
    | TemporalAnomalyMetadata
    | SeasonalPatternMetadata
    | FlapWaveMetadata
    | GenericPatternMetadata,
    Field(discriminator="kind"),
]

_metadata_adapter: TypeAdapter[PatternMetadata] = TypeAdapter(PatternMetadata)


def parse_metadata(pattern_type: str, raw: dict[str, Any] | None) -> PatternMetadata:
    """Validate a stored metadata payload against its pattern type.

    Rows written before ``kind`` was stored get it filled in from the
    pattern type.
    """
    payload = dict(raw or {})
    payload.setdefault("kind", pattern_type)
    if payload["kind"] != pattern_type:
        raise ValueError(
            f"metadata kind {payload['kind']!r} does not match pattern type {pattern_type!r}"
        )
    return _metadata_adapter.validate_python(payload)


def dump_metadata(metadata: PatternMetadata) -> dict[str, Any]:
    """JSON-safe dict for the metadata column."""
    return metadata.model_dump(mode="json")
