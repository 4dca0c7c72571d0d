"""Cost aggregation for the cost finder.

Orchestrates one lookup end to end:
1. Serve from the estimate cache when possible (scores are recomputed)
2. Gather search results, escalating to a forced global pass at most once
3. Ask the language model to reduce the price observations to one number
4. Attach deterministic quality scores and cache the estimate

Errors from the search or generation providers propagate unchanged; the
engine never retries.
"""

import asyncio
import json
from typing import List, Optional, Protocol, Sequence, Type, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from cost_finder.config.errors import MalformedProviderOutputError
from cost_finder.models.cost_estimate import (
    CostEstimate,
    CostLookup,
    GeneratedCostMetadata,
    QualityScores,
    SourceObservation,
    SourceType,
    to_source_type,
)
from cost_finder.models.cost_factor import CostFactorResult, ResultOrigin
from cost_finder.models.target import Target
from cost_finder.services.estimate_cache import EstimateCache
from cost_finder.services.quality_scorer import compute_quality_score
from cost_finder.services.search_gatherer import GatherResult, SearchGatherer

logger = structlog.get_logger()

SchemaT = TypeVar("SchemaT", bound=BaseModel)

EMPTY_JUSTIFICATION = "No cost data found for the ingredient."
MALFORMED_JUSTIFICATION = (
    "No cost data could be aggregated: the model returned output that did not match the schema."
)
DEFAULT_BATCH_CONCURRENCY = 4


# =============================================================================
# Prompts
# =============================================================================

SYSTEM_PROMPT = """
You are a careful and conservative assistant.
Your task is to estimate the most probable bulk WHOLESALE cost of an ingredient
based strictly on the provided search results.

Follow ALL rules below:

============================================================
1. DATA SOURCES AND GENERAL RULES
============================================================
- Use ONLY the information present in the provided search results to determine prices.
- You may use background knowledge ONLY for currency exchange rates
  when no exchange rate is present in the search results.
- Do not invent price data.
- Ignore any cost entries where:
  - amount <= 0, OR
  - weight unit or currency is unclear, OR
  - the value is obviously not a valid price-per-quantity.

============================================================
2. NORMALIZATION
============================================================
- Normalize all observations to the SAME weight unit and the SAME currency.
- If units differ (kg vs ton vs lb), convert everything to kilograms.
- If a price is given as a range (e.g., 350-420 USD/ton), use the midpoint.

============================================================
3. PRIORITIZATION
============================================================
- When several observations are available:
  1. Prefer entries whose sourceType is "preferred".
  2. Remove outliers (values extremely high or low vs the others).
  3. Pick the value that best represents the central tendency (mean or median).
- If no price is available for the target location, fall back to global prices.

============================================================
4. USD AND LOCAL CURRENCY
============================================================
- If USD prices are available, use them directly.
- If ONLY local currency prices are available, convert to USD with the best
  exchange rate available. If you rely on your own exchange rate knowledge,
  set isInferred to true.

============================================================
5. INSUFFICIENT DATA
============================================================
- If you cannot form a reliable estimate from the provided results:
  - Set costInUSD and costInLocalCurrency to 0.
  - Explain clearly why the data is insufficient in scoreJustification.

============================================================
6. OUTPUT
============================================================
- Follow the supplied schema exactly.
- Use at most TWO decimal places for prices. Do not output ranges.
- Always include the weight unit used and the list of sources used.
- For each source, when available, include:
  - type: one of commodity_index, major_vendor, trade_stats, supplier_quote,
    industry_report, web_secondary, anecdotal
  - ageMonths: months since the data point (null if unknown)
  - observedAt: ISO date (YYYY-MM-DD or YYYY-MM) of the observation
  - rawPriceUsdPerKg: the raw observed price in USD per kg
- Include derivationType (direct_local, direct_regional, inferred_regional,
  inferred_material_analog, heuristic) and geoProximity (same_cluster,
  same_country_same_market, same_country_different_market, neighboring_country,
  same_region, different_region).
- Be concise and factual.
"""


def build_prompt(target: Target, results: Sequence[CostFactorResult]) -> str:
    """Build the user prompt for one Target and its candidate results."""
    payload = json.dumps([result.to_prompt_dict() for result in results])
    return (
        f"User question:\n"
        f"What is the cost of {target.ingredient_name} in {target.location_name}, "
        f"both in USD and local currency?\n\n"
        f"Here are search results (biased to preferred domains):\n\n"
        f"{payload}\n\n"
        f"Now respond with a JSON object that matches the given schema."
    )


# =============================================================================
# Result helpers
# =============================================================================


class StructuredGenerator(Protocol):
    """Schema-constrained text generation consumed by the aggregator."""

    async def generate_structured(
        self, system_prompt: str, user_prompt: str, schema: Type[SchemaT]
    ) -> SchemaT: ...


def normalize_costful_results(results: Sequence[CostFactorResult]) -> List[CostFactorResult]:
    """Keep strictly positive cost entries and drop results left with none."""
    cleaned = [result.with_positive_costs() for result in results]
    return [result for result in cleaned if result.costs]


def pick_results_for_model(results: Sequence[CostFactorResult]) -> List[CostFactorResult]:
    """Preferred-domain results if there are any, otherwise everything."""
    preferred = [r for r in results if r.origin == ResultOrigin.PREFERRED]
    return preferred if preferred else list(results)


def make_empty_estimate(justification: str = EMPTY_JUSTIFICATION) -> CostEstimate:
    """Canonical estimate for a Target with no usable price data."""
    return CostEstimate(
        cost_in_usd=0.0,
        cost_in_local_currency=0.0,
        local_currency_code="USD",
        weight_unit="kg",
        quality_scores=QualityScores.zero(),
        justification=justification,
        sources=[],
        is_inferred=False,
        source_type="general",
    )


def attach_quality_scores(estimate: CostEstimate) -> CostEstimate:
    """Return a copy of ``estimate`` with freshly computed quality scores.

    Unknown source types score as ``web_secondary``. An estimate without
    sources gets the all-zero, low-band record.
    """
    if not estimate.sources:
        return estimate.model_copy(update={"quality_scores": QualityScores.zero()})

    scoring_sources = [
        source.model_copy(update={
            "source_type": (to_source_type(source.source_type) or SourceType.WEB_SECONDARY).value
        })
        for source in estimate.sources
    ]
    scores = compute_quality_score(
        scoring_sources,
        derivation_type=estimate.derivation_type,
        proximity=estimate.geo_proximity,
    )
    return estimate.model_copy(update={"quality_scores": scores})


def estimate_from_generation(metadata: GeneratedCostMetadata) -> CostEstimate:
    """Convert the model's structured output into an unscored CostEstimate."""
    return CostEstimate(
        cost_in_usd=metadata.cost_in_usd,
        cost_in_local_currency=metadata.cost_in_local_currency,
        local_currency_code=metadata.local_currency_code,
        weight_unit=metadata.weight_units or "kg",
        justification=metadata.score_justification or "",
        explanation=metadata.explanation,
        sources=[
            SourceObservation(
                label=source.label,
                url=source.url,
                source_type=source.type,
                age_months=source.age_months,
                observed_at=source.observed_at,
                raw_price_usd_per_kg=source.raw_price_usd_per_kg,
            )
            for source in metadata.sources
        ],
        derivation_type=metadata.derivation_type,
        geo_proximity=metadata.geo_proximity,
        is_inferred=metadata.is_inferred,
        source_type=metadata.source_type,
        date=metadata.date,
    )


# =============================================================================
# Aggregator
# =============================================================================


class CostAggregator:
    """Produces one cached, quality-scored cost estimate per Target."""

    def __init__(
        self,
        gatherer: SearchGatherer,
        generator: StructuredGenerator,
        cache: Optional[EstimateCache] = None
    ):
        """Initialize CostAggregator.

        Args:
            gatherer: Runs the location/global search passes.
            generator: Structured generation provider.
            cache: Estimate cache (memory-only when omitted).
        """
        self.gatherer = gatherer
        self.generator = generator
        self.cache = cache if cache is not None else EstimateCache()

    async def _search_with_fallback(self, target: Target) -> GatherResult:
        """Gather, then force one global pass if nothing usable came back."""
        first_pass = await self.gatherer.gather(target, force_global=False)
        first_results = normalize_costful_results(first_pass.results)

        if first_results or first_pass.used_global:
            return GatherResult(results=first_results, used_global=first_pass.used_global)

        logger.info(
            "cost_search_forcing_global",
            ingredient=target.ingredient_name,
            location=target.location_name
        )
        global_pass = await self.gatherer.gather(target, force_global=True)
        return GatherResult(
            results=normalize_costful_results(global_pass.results),
            used_global=True
        )

    def _read_cached(self, cache_key: str) -> Optional[CostEstimate]:
        """Validate a cached entry, or None when absent or unreadable.

        Stored quality scores are ignored since they are recomputed on every hit.
        An unreadable entry is treated as a miss so the next estimate replaces it.
        """
        cached = self.cache.get(cache_key)
        if cached is None:
            return None

        if not isinstance(cached, dict):
            logger.warning(
                "cost_estimate_cache_entry_invalid",
                key=cache_key,
                error=f"expected an object, got {type(cached).__name__}"
            )
            return None

        payload = {k: v for k, v in cached.items() if k != "qualityBreakdown"}
        try:
            return CostEstimate.model_validate(payload)
        except ValidationError as e:
            logger.warning("cost_estimate_cache_entry_invalid", key=cache_key, error=str(e)[:200])
            return None

    async def get_cost_estimate(self, target: Target) -> CostLookup:
        """Look up the wholesale cost of one Target.

        Args:
            target: Ingredient and location to price.

        Returns:
            CostLookup with the estimate and whether it came from the cache.

        Raises:
            ProviderError: If a search or generation provider fails.
        """
        cache_key = target.cache_key
        cached = self._read_cached(cache_key)
        if cached is not None:
            logger.info("cost_estimate_cache_hit", key=cache_key)
            return CostLookup(estimate=attach_quality_scores(cached), from_cache=True)

        gathered = await self._search_with_fallback(target)

        if not gathered.results:
            estimate = make_empty_estimate()
            await self.cache.put(cache_key, estimate.to_dict())
            logger.info(
                "cost_estimate_no_data",
                key=cache_key,
                used_global=gathered.used_global
            )
            return CostLookup(estimate=estimate, from_cache=False)

        candidates = pick_results_for_model(gathered.results)

        try:
            metadata = await self.generator.generate_structured(
                SYSTEM_PROMPT,
                build_prompt(target, candidates),
                GeneratedCostMetadata
            )
        except MalformedProviderOutputError as e:
            logger.warning("cost_estimate_malformed_output", key=cache_key, error=e.message)
            return CostLookup(
                estimate=make_empty_estimate(MALFORMED_JUSTIFICATION),
                from_cache=False
            )

        estimate = attach_quality_scores(estimate_from_generation(metadata))
        await self.cache.put(cache_key, estimate.to_dict())

        logger.info(
            "cost_estimate_complete",
            key=cache_key,
            candidates=len(candidates),
            used_global=gathered.used_global,
            cost_in_usd=estimate.cost_in_usd,
            quality_score=round(estimate.quality_score, 2),
            quality_band=estimate.quality_band.value
        )
        return CostLookup(estimate=estimate, from_cache=False)

    async def get_cost_estimates(
        self,
        targets: Sequence[Target],
        concurrency: int = DEFAULT_BATCH_CONCURRENCY
    ) -> List[CostLookup]:
        """Look up many Targets concurrently, returning lookups in input order.

        The first failure cancels the lookups still pending and is re-raised.
        """
        semaphore = asyncio.Semaphore(max(concurrency, 1))

        async def _bounded(target: Target) -> CostLookup:
            async with semaphore:
                return await self.get_cost_estimate(target)

        tasks = [asyncio.ensure_future(_bounded(t)) for t in targets]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            raise
