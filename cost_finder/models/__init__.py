"""Pydantic models for the cost finder."""

from cost_finder.models.target import Target, make_cache_key
from cost_finder.models.cost_factor import (
    CostEntry,
    CostFactorResult,
    CostSource,
    PointAmount,
    RangeAmount,
    ResultOrigin,
    parse_cost_amount,
)
from cost_finder.models.cost_estimate import (
    CostEstimate,
    CostLookup,
    DerivationType,
    EstimateExplanation,
    GeneratedCostMetadata,
    GeneratedSource,
    GeoProximity,
    LiteCostEstimate,
    QualityBand,
    QualityScores,
    SourceObservation,
    SourceType,
)

__all__ = [
    "Target",
    "make_cache_key",
    "CostEntry",
    "CostFactorResult",
    "CostSource",
    "PointAmount",
    "RangeAmount",
    "ResultOrigin",
    "parse_cost_amount",
    "CostEstimate",
    "CostLookup",
    "DerivationType",
    "EstimateExplanation",
    "GeneratedCostMetadata",
    "GeneratedSource",
    "GeoProximity",
    "LiteCostEstimate",
    "QualityBand",
    "QualityScores",
    "SourceObservation",
    "SourceType",
]
