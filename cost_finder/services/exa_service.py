"""Exa search service for the cost finder.

Provides structured web search against the Exa API. Each result page is
summarized by the provider into a ``costFactor`` object that follows the
JSON Schema below, so callers receive price data rather than raw text.

Two search modes:
- Preferred: keyword search restricted to a curated list of price sites
- General: neural search over the open web

References:
- Exa API Documentation: https://docs.exa.ai/reference/search
"""

import json
import time
from typing import Any, Dict, List, Optional

import httpx
import structlog
from pydantic import ValidationError

from cost_finder.config.errors import (
    ConfigurationError,
    ErrorCode,
    ProviderError,
)
from cost_finder.config.settings import settings
from cost_finder.models.cost_factor import CostEntry, CostFactorResult

logger = structlog.get_logger()


# =============================================================================
# Constants
# =============================================================================

PREFERRED_DOMAINS = [
    "selinawamucii.com",
    "tridge.com",
    "fao.org",
    "ahdb.org.uk",
    "tradingeconomics.com",
]

DEFAULT_NUM_RESULTS = 6
TEXT_MAX_CHARACTERS = 1500
HIGHLIGHT_SENTENCES = 3

GENERAL_SUMMARY_QUERY = (
    "Extract exact cost data with precise weight units (kg vs ton) as stated in the source"
)

COST_FACTOR_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Cost Factor Information",
    "type": "object",
    "properties": {
        "costFactor": {
            "type": "object",
            "properties": {
                "ingredientName": {"type": "string"},
                "locationName": {"type": "string"},
                "cost": {
                    "type": "array",
                    "description": (
                        "Each entry represents the cost **per weightUnit** of the ingredient. "
                        "The weightUnits field should properly record the unit used for the cost "
                        "amount (e.g., 'kg', 'g', 'lb', 'ton', 'Metric Ton')."
                    ),
                    "items": {
                        "type": "object",
                        "properties": {
                            "amount": {
                                "type": "number",
                                "description": (
                                    "Single cost for exactly 1 weightUnit of the ingredient. "
                                    "Use this when only one value is provided."
                                ),
                            },
                            "minAmount": {
                                "type": "number",
                                "description": (
                                    "Minimum observed cost for exactly 1 weightUnit, "
                                    "when the source provides a range."
                                ),
                            },
                            "maxAmount": {
                                "type": "number",
                                "description": (
                                    "Maximum observed cost for exactly 1 weightUnit, "
                                    "when the source provides a range."
                                ),
                            },
                            "currency": {
                                "type": "string",
                                "description": "Currency code (e.g., 'USD', 'BRL', 'EUR')",
                            },
                            "weightUnits": {
                                "type": "string",
                                "description": (
                                    "Unit of weight EXACTLY as stated in the source (e.g., 'kg', "
                                    "'g', 'lb', 'ton', 'metric ton', 'tonne'). Distinguish kg from "
                                    "ton/tonne by checking that prices are reasonable for the unit."
                                ),
                            },
                            "evaluationMethod": {
                                "type": "string",
                                "description": "How the cost was determined (e.g., 'market price', 'wholesale', 'retail')",
                            },
                            "assumptions": {
                                "type": "string",
                                "description": "Assumptions made in determining the cost",
                            },
                            "score": {
                                "type": "number",
                                "minimum": 0,
                                "maximum": 1,
                                "description": "Confidence score (0-1) for this cost data",
                            },
                            "scoreJustification": {
                                "type": "string",
                                "description": "Explanation for the confidence score",
                            },
                            "source": {
                                "type": "object",
                                "properties": {
                                    "url": {"type": "string"},
                                    "text": {"type": "string"},
                                },
                                "required": ["url"],
                            },
                        },
                        "oneOf": [
                            {
                                "description": "Single price point",
                                "required": ["amount", "currency", "weightUnits", "source"],
                            },
                            {
                                "description": "Price range",
                                "required": ["minAmount", "maxAmount", "currency", "weightUnits", "source"],
                            },
                        ],
                    },
                },
            },
            "description": "cost per unit data for the given ingredient at the specified location",
            "required": ["ingredientName", "locationName", "cost"],
        },
    },
    "required": ["costFactor"],
}


# =============================================================================
# Exa Service Class
# =============================================================================


class ExaSearchService:
    """Service for Exa structured search.

    Provides:
    - Preferred-domain search over curated price sites
    - General web search
    - Parsing and confidence filtering of structured cost summaries

    Transport failures are raised as ProviderError and never retried here.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        min_confidence: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """Initialize ExaSearchService.

        Args:
            api_key: Exa API key. Defaults to EXA_API_KEY from settings.
            base_url: API base URL (default from settings).
            timeout_seconds: Request timeout (default from settings).
            min_confidence: Minimum per-entry confidence to keep (default 0.6).
            transport: Optional httpx transport (used by tests).
        """
        self.api_key = api_key or settings.exa_api_key
        self.base_url = (base_url or settings.exa_base_url).rstrip("/")
        self.timeout_seconds = timeout_seconds or settings.exa_timeout_seconds
        self.min_confidence = (
            min_confidence if min_confidence is not None else settings.min_confidence_score
        )
        self._transport = transport

        if not self.api_key:
            logger.warning("exa_api_key_missing", message="EXA_API_KEY environment variable not set")

    async def _make_request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST a search request to Exa.

        Args:
            payload: Search request body

        Returns:
            JSON response from API

        Raises:
            ConfigurationError: If the API key is not configured (before any I/O)
            ProviderError: On HTTP or transport errors
        """
        if not self.api_key:
            raise ConfigurationError("Exa API key not configured", missing=["EXA_API_KEY"])

        url = f"{self.base_url}/search"
        headers = {"x-api-key": self.api_key, "Content-Type": "application/json"}

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                transport=self._transport
            ) as client:
                response = await client.post(url, json=payload, headers=headers)

                if response.status_code == 429:
                    raise ProviderError(
                        code=ErrorCode.SEARCH_QUOTA_EXHAUSTED,
                        message="Exa quota exhausted",
                        provider="exa",
                        details={"status_code": 429}
                    )

                response.raise_for_status()
                return response.json()

        except httpx.HTTPStatusError as e:
            raise ProviderError(
                code=ErrorCode.SEARCH_PROVIDER_ERROR,
                message=f"Exa search failed with status {e.response.status_code}",
                provider="exa",
                details={"status_code": e.response.status_code, "original_error": str(e)}
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(
                code=ErrorCode.SEARCH_PROVIDER_ERROR,
                message=f"Exa search failed: {e}",
                provider="exa",
                details={"original_error": str(e)}
            ) from e

    def _build_payload(
        self,
        query: str,
        num_results: int,
        search_type: str,
        include_domains: Optional[List[str]] = None,
        summary_query: Optional[str] = None
    ) -> Dict[str, Any]:
        summary: Dict[str, Any] = {"schema": COST_FACTOR_SCHEMA}
        if summary_query:
            summary["query"] = summary_query

        payload: Dict[str, Any] = {
            "query": query,
            "numResults": num_results,
            "type": search_type,
            "contents": {
                "text": {"maxCharacters": TEXT_MAX_CHARACTERS},
                "highlights": {"numSentences": HIGHLIGHT_SENTENCES},
                "summary": summary,
                "livecrawl": "always",
            },
        }
        if include_domains:
            payload["includeDomains"] = include_domains
        return payload

    async def _search(self, mode: str, payload: Dict[str, Any]) -> List[CostFactorResult]:
        start_time = time.time()

        data = await self._make_request(payload)
        raw_results = data.get("results", [])
        results = self.parse_results(raw_results)

        logger.info(
            "exa_search_complete",
            mode=mode,
            query=payload["query"][:80],
            raw_count=len(raw_results),
            results_count=len(results),
            search_time_ms=round((time.time() - start_time) * 1000, 2)
        )
        return results

    async def domain_preferred_search(
        self,
        query: str,
        num_results: int = DEFAULT_NUM_RESULTS
    ) -> List[CostFactorResult]:
        """Keyword search restricted to the curated preferred domains.

        Args:
            query: Search query string
            num_results: Number of pages to request

        Returns:
            Structured cost results that passed confidence filtering
        """
        payload = self._build_payload(
            query,
            num_results,
            search_type="keyword",
            include_domains=PREFERRED_DOMAINS,
        )
        return await self._search("preferred", payload)

    async def general_search(
        self,
        query: str,
        num_results: int = DEFAULT_NUM_RESULTS
    ) -> List[CostFactorResult]:
        """Neural search over the open web.

        Args:
            query: Search query string
            num_results: Number of pages to request

        Returns:
            Structured cost results that passed confidence filtering
        """
        payload = self._build_payload(
            query,
            num_results,
            search_type="neural",
            summary_query=GENERAL_SUMMARY_QUERY,
        )
        return await self._search("general", payload)

    def parse_results(self, raw_results: List[Dict[str, Any]]) -> List[CostFactorResult]:
        """Parse provider results, dropping malformed or low-confidence summaries."""
        parsed = []
        for item in raw_results:
            result = self._parse_result(item)
            if result is not None:
                parsed.append(result)
        return parsed

    def _parse_result(self, item: Dict[str, Any]) -> Optional[CostFactorResult]:
        """Parse one search hit into a CostFactorResult.

        Returns None when the summary is missing, unparseable, has no cost
        entries, every entry is below the confidence floor, or every entry
        is non-positive.
        """
        summary = item.get("summary")
        if not summary:
            return None

        try:
            structured = json.loads(summary) if isinstance(summary, str) else summary
            cost_factor = structured.get("costFactor")
        except (json.JSONDecodeError, AttributeError) as e:
            logger.warning("exa_summary_parse_failed", url=item.get("url"), error=str(e))
            return None

        if not isinstance(cost_factor, dict):
            return None

        raw_costs = cost_factor.get("cost") or []
        if not isinstance(raw_costs, list):
            return None

        entries: List[CostEntry] = []
        for raw_cost in raw_costs:
            try:
                entries.append(CostEntry.model_validate(raw_cost))
            except ValidationError as e:
                logger.warning(
                    "exa_cost_entry_invalid",
                    url=item.get("url"),
                    error=str(e).splitlines()[0]
                )

        if not entries:
            return None
        if all(entry.confidence_score < self.min_confidence for entry in entries):
            return None
        if all(not entry.is_positive for entry in entries):
            return None

        confident = [entry for entry in entries if entry.confidence_score >= self.min_confidence]

        try:
            return CostFactorResult(
                ingredient_name=str(cost_factor.get("ingredientName") or ""),
                location_name=str(cost_factor.get("locationName") or ""),
                costs=confident,
                text=item.get("text") or "",
                url=item.get("url"),
            )
        except ValidationError as e:
            logger.warning("exa_result_invalid", url=item.get("url"), error=str(e).splitlines()[0])
            return None

