"""Search gathering for the cost finder.

Collects structured price observations for a Target from two search
modes (preferred domains and the general web), escalating from a
location-scoped query to a global query when the first pass comes back
thin.
"""

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Set

import structlog

from cost_finder.config.settings import settings
from cost_finder.models.cost_factor import CostFactorResult, ResultOrigin
from cost_finder.models.target import Target

logger = structlog.get_logger()

# Minimum combined result count before falling back to the global query
RESULTS_THRESHOLD = 3


class StructuredSearchProvider(Protocol):
    """Structured web search capability consumed by the gatherer."""

    async def domain_preferred_search(
        self, query: str, num_results: int = ...
    ) -> List[CostFactorResult]: ...

    async def general_search(
        self, query: str, num_results: int = ...
    ) -> List[CostFactorResult]: ...


@dataclass
class GatherResult:
    """Outcome of one gather pass."""

    results: List[CostFactorResult] = field(default_factory=list)
    used_global: bool = False

    @property
    def preferred(self) -> List[CostFactorResult]:
        return [r for r in self.results if r.origin == ResultOrigin.PREFERRED]

    @property
    def general(self) -> List[CostFactorResult]:
        return [r for r in self.results if r.origin == ResultOrigin.GENERAL]


def make_location_query(target: Target) -> str:
    return f"{target.ingredient_name} wholesale price {target.location_name} bulk commodity"


def make_global_query(target: Target) -> str:
    return f"{target.ingredient_name} global wholesale commodity price"


def dedupe_results(
    preferred: List[CostFactorResult],
    general: List[CostFactorResult]
) -> List[CostFactorResult]:
    """Annotate and merge preferred and general results.

    Preferred results are all kept. A general result is kept only if it
    cites at least one source URL not already seen; the new URLs it
    brings are then marked seen so later general results cannot reuse
    them.
    """
    seen: Set[str] = {url for result in preferred for url in result.source_urls}

    annotated = [
        result.model_copy(update={"id": index + 1, "origin": ResultOrigin.PREFERRED})
        for index, result in enumerate(preferred)
    ]

    next_id = len(annotated) + 1
    for result in general:
        new_urls = [url for url in result.source_urls if url not in seen]
        if not new_urls:
            continue
        seen.update(new_urls)
        annotated.append(
            result.model_copy(update={"id": next_id, "origin": ResultOrigin.GENERAL})
        )
        next_id += 1

    return annotated


class SearchGatherer:
    """Runs the location-then-global search passes for a Target.

    Provider errors propagate to the caller; nothing is retried here.
    """

    def __init__(
        self,
        search_provider: StructuredSearchProvider,
        results_threshold: Optional[int] = None,
        num_results: Optional[int] = None
    ):
        """Initialize SearchGatherer.

        Args:
            search_provider: Structured search implementation.
            results_threshold: Combined count below which the global pass runs.
            num_results: Results requested per search call.
        """
        self.search = search_provider
        self.results_threshold = results_threshold or settings.search_results_threshold or RESULTS_THRESHOLD
        self.num_results = num_results or settings.search_num_results

    async def _search_both(self, query: str):
        """Run preferred and general search for one query concurrently."""
        return await asyncio.gather(
            self.search.domain_preferred_search(query, num_results=self.num_results),
            self.search.general_search(query, num_results=self.num_results),
        )

    async def gather(self, target: Target, force_global: bool = False) -> GatherResult:
        """Gather structured price results for a Target.

        Args:
            target: Ingredient/location to search for.
            force_global: Skip the location pass and search globally only.

        Returns:
            GatherResult with annotated, deduplicated results and whether
            the global query ran.
        """
        preferred: List[CostFactorResult] = []
        general: List[CostFactorResult] = []

        if not force_global:
            preferred, general = await self._search_both(make_location_query(target))

        use_global = force_global or len(preferred) + len(general) < self.results_threshold

        if use_global:
            preferred_global, general_global = await self._search_both(make_global_query(target))
            preferred = [*preferred, *preferred_global]
            general = [*general, *general_global]

        results = dedupe_results(preferred, general)

        logger.info(
            "search_gather_complete",
            ingredient=target.ingredient_name,
            location=target.location_name,
            force_global=force_global,
            used_global=use_global,
            preferred_count=len(preferred),
            general_count=len(general),
            kept_count=len(results)
        )

        return GatherResult(results=results, used_global=use_global)
