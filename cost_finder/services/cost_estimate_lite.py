"""Lightweight cost estimate without the language model.

Runs the search modes one at a time, from most to least specific, and
stops at the first step that yields any positive price. The estimate is
simply the cheapest observed price, so it is never cached.
"""

from typing import List, Optional, Tuple

import structlog

from cost_finder.models.cost_estimate import EstimateExplanation, LiteCostEstimate, QualityBand
from cost_finder.models.cost_factor import CostFactorResult
from cost_finder.services.cost_aggregator import normalize_costful_results
from cost_finder.services.search_gatherer import StructuredSearchProvider

logger = structlog.get_logger()

LITE_QUALITY_SCORE = 50.0


def pick_best_cost(results: List[CostFactorResult]) -> Optional[Tuple[float, str]]:
    """Lowest positive price across all entries, with its unit bucketed to kg or ton."""
    candidates = [
        (entry.numeric_value, "ton" if "ton" in entry.weight_unit.lower() else "kg")
        for result in results
        for entry in result.costs
        if entry.is_positive
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda candidate: candidate[0])


class LiteCostEstimator:
    """Cheapest-observation estimator over a structured search provider."""

    def __init__(self, search_provider: StructuredSearchProvider):
        self.search = search_provider

    async def _search_cascade(self, ingredient: str, location: str) -> List[CostFactorResult]:
        location_query = f"{ingredient} wholesale price {location} bulk commodity"
        global_query = f"{ingredient} global wholesale commodity price"

        steps = [
            ("preferred_location", self.search.domain_preferred_search, location_query),
            ("general_location", self.search.general_search, location_query),
            ("preferred_global", self.search.domain_preferred_search, global_query),
            ("general_global", self.search.general_search, global_query),
        ]
        for step, search_fn, query in steps:
            results = normalize_costful_results(await search_fn(query))
            if results:
                logger.debug("lite_search_step_hit", step=step, results_count=len(results))
                return results
        return []

    async def get_cost_estimate_lite(self, ingredient: str, location: str) -> LiteCostEstimate:
        """Estimate a cost from the cheapest positive observation.

        Args:
            ingredient: Ingredient name.
            location: Human-readable location name.

        Returns:
            LiteCostEstimate. With no usable data the cost is 0 and the band low.
        """
        results = await self._search_cascade(ingredient, location)
        best = pick_best_cost(results)

        if best is None:
            logger.info("lite_estimate_no_data", ingredient=ingredient, location=location)
            return LiteCostEstimate(
                ingredient=ingredient,
                location=location,
                cost_in_usd=0.0,
                weight_unit="kg",
                quality_band=QualityBand.LOW,
                quality_score=0.0,
                justification="No cost data found.",
                explanation=EstimateExplanation(
                    reasoning_and_methodology="No search results returned any usable cost data."
                ),
            )

        amount, unit = best
        logger.info(
            "lite_estimate_complete",
            ingredient=ingredient,
            location=location,
            cost_in_usd=amount,
            weight_unit=unit
        )
        return LiteCostEstimate(
            ingredient=ingredient,
            location=location,
            cost_in_usd=amount,
            weight_unit=unit,
            quality_band=QualityBand.MEDIUM,
            quality_score=LITE_QUALITY_SCORE,
            justification="Derived from best available cost entry.",
            explanation=EstimateExplanation(
                reasoning_and_methodology="Selected lowest positive cost from structured search results."
            ),
        )
