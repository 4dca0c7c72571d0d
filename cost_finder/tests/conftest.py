"""Pytest configuration and shared fixtures for cost finder tests."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from cost_finder.models.target import Target
from cost_finder.services.estimate_cache import EstimateCache
from cost_finder.services.search_gatherer import SearchGatherer
from cost_finder.tests.fixtures.mock_search_data import make_generated_metadata


# ============================================================================
# Targets
# ============================================================================

@pytest.fixture
def sample_target():
    """Wheat flour in Australia."""
    return Target(
        ingredient_name="Wheat Flour",
        location_name="Australia",
        location_code="AU",
    )


# ============================================================================
# Provider Mocks
# ============================================================================

@pytest.fixture
def mock_search_provider():
    """Structured search provider returning no results by default."""
    provider = MagicMock()
    provider.domain_preferred_search = AsyncMock(return_value=[])
    provider.general_search = AsyncMock(return_value=[])
    return provider


@pytest.fixture
def mock_generator():
    """Structured generator returning a two-source commodity index estimate."""
    generator = MagicMock()
    generator.generate_structured = AsyncMock(return_value=make_generated_metadata())
    return generator


# ============================================================================
# Engine Fixtures
# ============================================================================

@pytest.fixture
def cache_path(tmp_path):
    """Path for a throwaway cache file."""
    return tmp_path / "llm_response_cache.json"


@pytest.fixture
def estimate_cache(cache_path):
    """File-backed cache in a temp directory."""
    return EstimateCache(cache_path)


@pytest.fixture
def gatherer(mock_search_provider):
    """SearchGatherer over the mock provider with fixed thresholds."""
    return SearchGatherer(mock_search_provider, results_threshold=3, num_results=6)
