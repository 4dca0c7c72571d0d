"""Cost Estimate Pydantic models for the cost finder.

This module defines the priced estimate returned for a Target, the
per-source metadata used for deterministic quality scoring, and the
structured output schema requested from the language model.
"""

import datetime as dt
from enum import Enum
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# ENUMS
# =============================================================================


class SourceType(str, Enum):
    """Provenance classification of a price observation."""

    COMMODITY_INDEX = "commodity_index"
    MAJOR_VENDOR = "major_vendor"
    TRADE_STATS = "trade_stats"
    SUPPLIER_QUOTE = "supplier_quote"
    INDUSTRY_REPORT = "industry_report"
    WEB_SECONDARY = "web_secondary"
    ANECDOTAL = "anecdotal"


class DerivationType(str, Enum):
    """How directly a price maps to the target location."""

    DIRECT_LOCAL = "direct_local"
    DIRECT_REGIONAL = "direct_regional"
    INFERRED_REGIONAL = "inferred_regional"
    INFERRED_MATERIAL_ANALOG = "inferred_material_analog"
    HEURISTIC = "heuristic"


class GeoProximity(str, Enum):
    """How close the observation's market is to the target location."""

    SAME_CLUSTER = "same_cluster"
    SAME_COUNTRY_SAME_MARKET = "same_country_same_market"
    SAME_COUNTRY_DIFFERENT_MARKET = "same_country_different_market"
    NEIGHBORING_COUNTRY = "neighboring_country"
    SAME_REGION = "same_region"
    DIFFERENT_REGION = "different_region"


class QualityBand(str, Enum):
    """Coarse classification of the composite quality score."""

    HIGH = "high"              # composite >= 80
    MEDIUM = "medium"          # composite >= 60
    LOW_MEDIUM = "low_medium"  # composite >= 40
    LOW = "low"


def _enum_or_none(enum_cls, value):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return None


def to_source_type(value: Optional[str]) -> Optional[SourceType]:
    """Normalize a free-form string to a SourceType (None when unknown)."""
    return _enum_or_none(SourceType, value)


def to_derivation_type(value: Optional[str]) -> Optional[DerivationType]:
    """Normalize a free-form string to a DerivationType (None when unknown)."""
    return _enum_or_none(DerivationType, value)


def to_geo_proximity(value: Optional[str]) -> Optional[GeoProximity]:
    """Normalize a free-form string to a GeoProximity (None when unknown)."""
    return _enum_or_none(GeoProximity, value)


# =============================================================================
# SOURCE OBSERVATION
# =============================================================================


class SourceObservation(BaseModel):
    """Metadata for one source used to derive an estimate.

    ``source_type`` is kept as a plain string so unknown classifications
    survive round-trips through the cache; scoring decides what to make
    of them.
    """

    model_config = ConfigDict(populate_by_name=True)

    label: Optional[str] = Field(default=None, description="Short title of the source")
    url: str = Field(..., description="URL of the exact page")
    source_type: Optional[str] = Field(default=None, alias="type")
    age_months: Optional[float] = Field(default=None, ge=0, alias="ageMonths")
    observed_at: Optional[Union[str, int, float, dt.date, dt.datetime]] = Field(
        default=None,
        alias="observedAt",
        description="YYYY, YYYY-MM, ISO date/time, or epoch milliseconds"
    )
    raw_price_usd_per_kg: Optional[float] = Field(default=None, ge=0, alias="rawPriceUsdPerKg")


# =============================================================================
# QUALITY SCORES
# =============================================================================


class QualityScores(BaseModel):
    """Deterministic quality breakdown (each sub-score 0-100)."""

    recency: float = Field(..., ge=0, le=100)
    source: float = Field(..., ge=0, le=100)
    estimation: float = Field(..., ge=0, le=100)
    consistency: float = Field(..., ge=0, le=100)
    proximity: float = Field(..., ge=0, le=100)
    composite: float = Field(..., ge=0, le=100)
    band: QualityBand

    @classmethod
    def zero(cls) -> "QualityScores":
        """All-zero, low-band record used when there is nothing to score."""
        return cls(
            recency=0.0,
            source=0.0,
            estimation=0.0,
            consistency=0.0,
            proximity=0.0,
            composite=0.0,
            band=QualityBand.LOW,
        )


# =============================================================================
# COST ESTIMATE
# =============================================================================


class EstimateExplanation(BaseModel):
    """Reasoning behind an estimate."""

    model_config = ConfigDict(populate_by_name=True)

    reasoning_and_methodology: str = Field(..., alias="reasoningAndMethodology")
    assumptions: Optional[str] = None


class CostEstimate(BaseModel):
    """Final priced estimate for one Target."""

    model_config = ConfigDict(populate_by_name=True)

    cost_in_usd: float = Field(..., ge=0, alias="costInUSD")
    cost_in_local_currency: Optional[float] = Field(default=None, alias="costInLocalCurrency")
    local_currency_code: Optional[str] = Field(default=None, alias="localCurrencyCode")
    weight_unit: str = Field(default="kg", alias="weightUnits")
    quality_scores: QualityScores = Field(
        default_factory=QualityScores.zero,
        alias="qualityBreakdown"
    )
    justification: str = Field(default="", alias="scoreJustification")
    explanation: Optional[EstimateExplanation] = None
    sources: List[SourceObservation] = Field(default_factory=list)
    derivation_type: Optional[DerivationType] = Field(default=None, alias="derivationType")
    geo_proximity: Optional[GeoProximity] = Field(default=None, alias="geoProximity")
    is_inferred: bool = Field(default=False, alias="isInferred")
    source_type: Optional[str] = Field(default=None, alias="sourceType")
    date: Optional[str] = Field(default=None, description="Date or vintage of the data")

    @property
    def quality_score(self) -> float:
        return self.quality_scores.composite

    @property
    def quality_band(self) -> QualityBand:
        return self.quality_scores.band

    def to_dict(self) -> dict:
        """Convert to the camelCase JSON shape used by the cache file."""
        data = self.model_dump(mode="json", by_alias=True)
        data["qualityScore"] = self.quality_score
        data["qualityBand"] = self.quality_band.value
        return data


class CostLookup(BaseModel):
    """Result of a cost lookup."""

    estimate: CostEstimate
    from_cache: bool = False


class LiteCostEstimate(BaseModel):
    """LLM-free estimate produced from the cheapest observed price."""

    model_config = ConfigDict(populate_by_name=True)

    ingredient: str
    location: str
    cost_in_usd: float = Field(..., ge=0, alias="costInUSD")
    weight_unit: Literal["kg", "ton"] = Field(default="kg", alias="weightUnits")
    quality_band: QualityBand = Field(..., alias="qualityBand")
    quality_score: float = Field(..., ge=0, le=100, alias="qualityScore")
    justification: str = Field(..., alias="scoreJustification")
    explanation: Optional[EstimateExplanation] = None


# =============================================================================
# STRUCTURED GENERATION SCHEMA
# =============================================================================


class GeneratedSource(BaseModel):
    """Source entry as reported by the model."""

    model_config = ConfigDict(populate_by_name=True)

    label: str = Field(..., description="Short description or title of the source")
    url: str = Field(..., description="URL of the exact page")
    type: Optional[str] = Field(
        default=None,
        description=(
            "One of commodity_index, major_vendor, trade_stats, supplier_quote, "
            "industry_report, web_secondary, anecdotal"
        )
    )
    age_months: Optional[float] = Field(
        default=None,
        ge=0,
        alias="ageMonths",
        description="Months since the data point; null if unknown"
    )
    observed_at: Optional[str] = Field(
        default=None,
        alias="observedAt",
        description="ISO date (YYYY-MM-DD or YYYY-MM) of the price observation"
    )
    raw_price_usd_per_kg: Optional[float] = Field(
        default=None,
        ge=0,
        alias="rawPriceUsdPerKg",
        description="Raw observed price in USD per kg before any conversions"
    )


class GeneratedCostMetadata(BaseModel):
    """Cost metadata the model must return for one Target."""

    model_config = ConfigDict(populate_by_name=True)

    cost_in_usd: float = Field(
        ...,
        ge=0,
        alias="costInUSD",
        description="Normalized cost in USD per weight unit (one number, max 2 decimals, no ranges)"
    )
    cost_in_local_currency: Optional[float] = Field(
        default=None,
        alias="costInLocalCurrency",
        description="Cost in local currency per weight unit (one number, max 2 decimals, no ranges)"
    )
    local_currency_code: Optional[str] = Field(
        default=None,
        alias="localCurrencyCode",
        description="ISO currency code for costInLocalCurrency"
    )
    weight_units: Optional[Literal["kg", "ton"]] = Field(
        default=None,
        alias="weightUnits",
        description="Weight unit applied to the costs; kg expected"
    )
    score_justification: Optional[str] = Field(
        default=None,
        alias="scoreJustification",
        description="Short justification of data quality"
    )
    explanation: Optional[EstimateExplanation] = None
    is_inferred: bool = Field(
        default=False,
        alias="isInferred",
        description="True when cost is inferred from non-local data or an assumed exchange rate"
    )
    source_type: Optional[Literal["preferred", "general"]] = Field(
        default="general",
        alias="sourceType",
        description="Source type classification for prioritization"
    )
    sources: List[GeneratedSource] = Field(
        default_factory=list,
        description="Sources used to derive the cost"
    )
    date: Optional[str] = Field(default=None, description="Date or vintage of the data")
    derivation_type: Optional[DerivationType] = Field(default=None, alias="derivationType")
    geo_proximity: Optional[GeoProximity] = Field(default=None, alias="geoProximity")

    @field_validator("is_inferred", mode="before")
    @classmethod
    def _coerce_is_inferred(cls, value: Any) -> bool:
        """Models sometimes emit "true"/"false" strings or null here."""
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() == "true"
        return False

    @field_validator("source_type", mode="before")
    @classmethod
    def _coerce_source_type(cls, value: Any) -> str:
        return value if value in ("preferred", "general") else "general"
