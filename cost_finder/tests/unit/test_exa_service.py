"""Unit tests for the Exa search service."""

import json

import httpx
import pytest

from cost_finder.config.errors import ConfigurationError, ErrorCode, ProviderError
from cost_finder.models.cost_factor import RangeAmount
from cost_finder.services.exa_service import PREFERRED_DOMAINS, ExaSearchService
from cost_finder.tests.fixtures.mock_search_data import (
    FAO_URL,
    TRIDGE_URL,
    make_cost_entry,
    make_exa_item,
)

BASE_URL = "https://api.exa.test"


def _service(handler, **kwargs):
    return ExaSearchService(
        api_key="test-key",
        base_url=BASE_URL,
        timeout_seconds=5,
        min_confidence=0.6,
        transport=httpx.MockTransport(handler),
        **kwargs
    )


def _recording_handler(items, captured):
    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={"results": items})
    return handler


class TestExaRequests:
    """Tests for request construction."""

    @pytest.mark.asyncio
    async def test_domain_preferred_search_payload(self):
        captured = []
        service = _service(_recording_handler([], captured))

        await service.domain_preferred_search("wheat flour wholesale price Australia bulk commodity")

        request = captured[0]
        body = json.loads(request.content)
        assert str(request.url) == f"{BASE_URL}/search"
        assert request.headers["x-api-key"] == "test-key"
        assert body["type"] == "keyword"
        assert body["numResults"] == 6
        assert body["includeDomains"] == PREFERRED_DOMAINS
        assert body["contents"]["livecrawl"] == "always"
        assert body["contents"]["text"] == {"maxCharacters": 1500}
        assert body["contents"]["highlights"] == {"numSentences": 3}
        assert "costFactor" in body["contents"]["summary"]["schema"]["properties"]
        assert "query" not in body["contents"]["summary"]

    @pytest.mark.asyncio
    async def test_general_search_payload(self):
        captured = []
        service = _service(_recording_handler([], captured))

        await service.general_search("wheat flour global wholesale commodity price", num_results=4)

        body = json.loads(captured[0].content)
        assert body["type"] == "neural"
        assert body["numResults"] == 4
        assert "includeDomains" not in body
        assert "weight units" in body["contents"]["summary"]["query"]

    @pytest.mark.asyncio
    async def test_missing_key_fails_before_io(self):
        captured = []
        service = _service(_recording_handler([], captured))
        service.api_key = None

        with pytest.raises(ConfigurationError) as exc_info:
            await service.general_search("rice price")

        assert exc_info.value.missing == ["EXA_API_KEY"]
        assert captured == []


class TestExaErrors:
    """Tests for transport error mapping."""

    @pytest.mark.asyncio
    async def test_quota_exhausted(self):
        service = _service(lambda request: httpx.Response(429, json={"error": "quota"}))

        with pytest.raises(ProviderError) as exc_info:
            await service.general_search("rice price")

        assert exc_info.value.code == ErrorCode.SEARCH_QUOTA_EXHAUSTED
        assert exc_info.value.provider == "exa"

    @pytest.mark.asyncio
    async def test_server_error(self):
        service = _service(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(ProviderError) as exc_info:
            await service.domain_preferred_search("rice price")

        assert exc_info.value.code == ErrorCode.SEARCH_PROVIDER_ERROR
        assert exc_info.value.details["status_code"] == 500

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        service = _service(handler)

        with pytest.raises(ProviderError) as exc_info:
            await service.general_search("rice price")

        assert exc_info.value.code == ErrorCode.SEARCH_PROVIDER_ERROR


class TestExaResultParsing:
    """Tests for summary parsing and confidence filtering."""

    @pytest.mark.asyncio
    async def test_keeps_confident_entries_only(self):
        items = [make_exa_item(TRIDGE_URL, [
            make_cost_entry(TRIDGE_URL, amount=0.55, score=0.9),
            make_cost_entry(FAO_URL, amount=0.40, score=0.5),
        ])]
        service = _service(_recording_handler(items, []))

        results = await service.domain_preferred_search("wheat flour price")

        assert len(results) == 1
        assert [c.numeric_value for c in results[0].costs] == [0.55]
        assert results[0].url == TRIDGE_URL
        assert results[0].text == "Wheat flour wholesale price per kg"

    def test_drops_result_when_all_entries_below_floor(self):
        service = _service(_recording_handler([], []))
        item = make_exa_item(TRIDGE_URL, [make_cost_entry(TRIDGE_URL, score=0.3)])

        assert service.parse_results([item]) == []

    def test_drops_result_when_all_entries_non_positive(self):
        service = _service(_recording_handler([], []))
        item = make_exa_item(TRIDGE_URL, [
            make_cost_entry(TRIDGE_URL, amount=0, score=0.9),
            make_cost_entry(FAO_URL, min_amount=0, max_amount=0, score=0.9),
        ])

        assert service.parse_results([item]) == []

    def test_drops_missing_and_unparseable_summaries(self):
        service = _service(_recording_handler([], []))
        items = [
            {"url": TRIDGE_URL, "text": "no summary"},
            {"url": FAO_URL, "summary": "{not json"},
            {"url": FAO_URL, "summary": json.dumps({"somethingElse": {}})},
        ]

        assert service.parse_results(items) == []

    def test_accepts_dict_summary_and_ranges(self):
        service = _service(_recording_handler([], []))
        item = make_exa_item(
            FAO_URL,
            [make_cost_entry(FAO_URL, min_amount=350, max_amount=420, weight_units="Metric Ton")],
            summary_as_string=False,
        )

        results = service.parse_results([item])

        assert len(results) == 1
        assert isinstance(results[0].costs[0].price, RangeAmount)
        assert results[0].costs[0].weight_unit == "Metric Ton"

    def test_skips_invalid_entries(self):
        service = _service(_recording_handler([], []))
        broken = make_cost_entry(FAO_URL, amount=1.0)
        del broken["currency"]
        item = make_exa_item(TRIDGE_URL, [broken, make_cost_entry(TRIDGE_URL, amount=0.6)])

        results = service.parse_results([item])

        assert len(results) == 1
        assert results[0].source_urls == [TRIDGE_URL]
