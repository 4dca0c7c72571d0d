"""Services for the cost finder.

Factories here wire the concrete providers (Exa search, OpenAI via
LangChain) into the engine objects.
"""

from pathlib import Path
from typing import Optional, Union

from cost_finder.config.errors import ConfigurationError
from cost_finder.config.settings import Settings, settings as default_settings
from cost_finder.services.cost_aggregator import CostAggregator
from cost_finder.services.cost_estimate_lite import LiteCostEstimator
from cost_finder.services.estimate_cache import EstimateCache
from cost_finder.services.exa_service import ExaSearchService
from cost_finder.services.llm_service import LLMService
from cost_finder.services.quality_scorer import compute_quality_score
from cost_finder.services.search_gatherer import GatherResult, SearchGatherer

__all__ = [
    "CostAggregator",
    "EstimateCache",
    "ExaSearchService",
    "GatherResult",
    "LLMService",
    "LiteCostEstimator",
    "SearchGatherer",
    "compute_quality_score",
    "create_cost_aggregator",
    "create_lite_estimator",
]


def _build_search_service(config: Settings) -> ExaSearchService:
    return ExaSearchService(
        api_key=config.exa_api_key,
        base_url=config.exa_base_url,
        timeout_seconds=config.exa_timeout_seconds,
        min_confidence=config.min_confidence_score,
    )


def create_cost_aggregator(
    settings: Optional[Settings] = None,
    cache_path: Union[str, Path, None] = None
) -> CostAggregator:
    """Build a CostAggregator wired to Exa, OpenAI and a file cache.

    Args:
        settings: Configuration to use (defaults to the module singleton).
        cache_path: Cache file override (defaults to ``settings.cache_path``).

    Raises:
        ConfigurationError: If a required API key is missing.
    """
    config = settings or default_settings
    config.validate()

    gatherer = SearchGatherer(
        _build_search_service(config),
        results_threshold=config.search_results_threshold,
        num_results=config.search_num_results,
    )
    generator = LLMService(
        model=config.llm_model,
        temperature=config.llm_temperature,
        api_key=config.openai_api_key,
    )
    cache = EstimateCache(cache_path or config.cache_path)
    return CostAggregator(gatherer, generator, cache)


def create_lite_estimator(settings: Optional[Settings] = None) -> LiteCostEstimator:
    """Build a LiteCostEstimator backed by Exa search.

    Raises:
        ConfigurationError: If EXA_API_KEY is missing.
    """
    config = settings or default_settings
    if not config.exa_api_key:
        raise ConfigurationError("Exa API key not configured", missing=["EXA_API_KEY"])
    return LiteCostEstimator(_build_search_service(config))
