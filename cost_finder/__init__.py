"""Ingredient wholesale cost finder.

Estimates the bulk wholesale cost of a food ingredient at a location
from structured web search results, reduced to one number by a language
model and scored for quality by deterministic rules.

Architecture:
- SearchGatherer: location query first, global query when results are thin
- CostAggregator: cache, escalation, model aggregation, quality scoring
- EstimateCache: flat JSON file keyed by ingredient and location code
- LiteCostEstimator: cheapest observed price, no model call
"""

__version__ = "1.0.0"
