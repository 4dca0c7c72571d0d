"""Unit tests for search gathering and escalation."""

import pytest
from unittest.mock import call

from cost_finder.models.cost_factor import ResultOrigin
from cost_finder.services.search_gatherer import (
    dedupe_results,
    make_global_query,
    make_location_query,
)
from cost_finder.tests.fixtures.mock_search_data import (
    FAO_URL,
    GENERAL_URL,
    SELINA_URL,
    TRIDGE_URL,
    make_cost_entry,
    make_result,
)

LOCATION_QUERY = "Wheat Flour wholesale price Australia bulk commodity"
GLOBAL_QUERY = "Wheat Flour global wholesale commodity price"


class TestQueries:
    """Tests for query construction."""

    def test_location_query(self, sample_target):
        assert make_location_query(sample_target) == LOCATION_QUERY

    def test_global_query(self, sample_target):
        assert make_global_query(sample_target) == GLOBAL_QUERY


class TestDedupeResults:
    """Tests for preferred/general merging."""

    def test_preferred_first_with_sequential_ids(self):
        preferred = [make_result(TRIDGE_URL), make_result(SELINA_URL)]
        general = [make_result(GENERAL_URL)]

        results = dedupe_results(preferred, general)

        assert [r.id for r in results] == [1, 2, 3]
        assert [r.origin for r in results] == [
            ResultOrigin.PREFERRED,
            ResultOrigin.PREFERRED,
            ResultOrigin.GENERAL,
        ]

    def test_general_result_with_only_seen_urls_dropped(self):
        preferred = [make_result(TRIDGE_URL)]
        general = [make_result(GENERAL_URL, entries=[make_cost_entry(TRIDGE_URL)])]

        results = dedupe_results(preferred, general)

        assert len(results) == 1

    def test_general_results_dedupe_each_other(self):
        general = [
            make_result(GENERAL_URL, entries=[make_cost_entry(FAO_URL)]),
            make_result(GENERAL_URL, entries=[make_cost_entry(FAO_URL)]),
        ]

        results = dedupe_results([], general)

        assert len(results) == 1
        assert results[0].id == 1

    def test_general_result_with_one_new_url_kept(self):
        preferred = [make_result(TRIDGE_URL)]
        general = [make_result(GENERAL_URL, entries=[
            make_cost_entry(TRIDGE_URL),
            make_cost_entry(FAO_URL),
        ])]

        results = dedupe_results(preferred, general)

        assert len(results) == 2
        assert len(results[1].costs) == 2

    def test_preferred_results_never_dropped(self):
        preferred = [make_result(TRIDGE_URL), make_result(TRIDGE_URL)]

        assert len(dedupe_results(preferred, [])) == 2


class TestSearchGatherer:
    """Tests for the location-then-global passes."""

    @pytest.mark.asyncio
    async def test_thin_location_pass_triggers_global(self, gatherer, mock_search_provider, sample_target):
        # One preferred hit for wheat flour in Australia is below the threshold of 3
        mock_search_provider.domain_preferred_search.side_effect = [
            [make_result(TRIDGE_URL)],
            [make_result(FAO_URL)],
        ]
        mock_search_provider.general_search.side_effect = [[], []]

        gathered = await gatherer.gather(sample_target)

        assert gathered.used_global is True
        assert mock_search_provider.domain_preferred_search.call_args_list == [
            call(LOCATION_QUERY, num_results=6),
            call(GLOBAL_QUERY, num_results=6),
        ]
        assert mock_search_provider.general_search.call_count == 2
        assert [r.source_urls[0] for r in gathered.preferred] == [TRIDGE_URL, FAO_URL]

    @pytest.mark.asyncio
    async def test_enough_location_results_skip_global(self, gatherer, mock_search_provider, sample_target):
        mock_search_provider.domain_preferred_search.return_value = [
            make_result(TRIDGE_URL),
            make_result(SELINA_URL),
        ]
        mock_search_provider.general_search.return_value = [make_result(GENERAL_URL)]

        gathered = await gatherer.gather(sample_target)

        assert gathered.used_global is False
        mock_search_provider.domain_preferred_search.assert_called_once_with(LOCATION_QUERY, num_results=6)
        mock_search_provider.general_search.assert_called_once_with(LOCATION_QUERY, num_results=6)
        assert len(gathered.results) == 3
        assert len(gathered.general) == 1

    @pytest.mark.asyncio
    async def test_threshold_counts_before_dedupe(self, gatherer, mock_search_provider, sample_target):
        mock_search_provider.domain_preferred_search.return_value = [make_result(TRIDGE_URL)]
        mock_search_provider.general_search.return_value = [
            make_result(GENERAL_URL, entries=[make_cost_entry(TRIDGE_URL)]),
            make_result(GENERAL_URL, entries=[make_cost_entry(TRIDGE_URL)]),
        ]

        gathered = await gatherer.gather(sample_target)

        assert gathered.used_global is False
        assert len(gathered.results) == 1

    @pytest.mark.asyncio
    async def test_force_global_skips_location_pass(self, gatherer, mock_search_provider, sample_target):
        gathered = await gatherer.gather(sample_target, force_global=True)

        assert gathered.used_global is True
        assert gathered.results == []
        mock_search_provider.domain_preferred_search.assert_called_once_with(GLOBAL_QUERY, num_results=6)
        mock_search_provider.general_search.assert_called_once_with(GLOBAL_QUERY, num_results=6)

    @pytest.mark.asyncio
    async def test_provider_errors_propagate(self, gatherer, mock_search_provider, sample_target):
        from cost_finder.config.errors import ErrorCode, ProviderError

        mock_search_provider.general_search.side_effect = ProviderError(
            code=ErrorCode.SEARCH_PROVIDER_ERROR,
            message="Exa search failed",
            provider="exa"
        )

        with pytest.raises(ProviderError):
            await gatherer.gather(sample_target)
