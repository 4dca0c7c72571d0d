"""Unit tests for cost finder models."""

import pytest
from pydantic import ValidationError

from cost_finder.models import (
    CostEntry,
    CostEstimate,
    GeneratedCostMetadata,
    PointAmount,
    RangeAmount,
    Target,
    make_cache_key,
    parse_cost_amount,
)
from cost_finder.tests.fixtures.mock_search_data import make_cost_entry, make_result


class TestTarget:
    """Tests for Target."""

    def test_cache_key_lowercases_ingredient(self):
        target = Target(ingredientName="Wheat Flour", locationName="Australia", locationCode="AU")

        assert target.cache_key == "wheat flour::AU"
        assert make_cache_key("Wheat Flour", "AU") == target.cache_key

    def test_empty_ingredient_rejected(self):
        with pytest.raises(ValidationError):
            Target(ingredient_name="", location_name="Australia", location_code="AU")


class TestCostAmount:
    """Tests for the point/range amount variant."""

    def test_point_amount(self):
        amount = parse_cost_amount({"amount": 420.0})

        assert isinstance(amount, PointAmount)
        assert amount.numeric_value == 420.0
        assert amount.is_positive

    def test_range_amount(self):
        amount = parse_cost_amount({"minAmount": 350.0, "maxAmount": 420.0})

        assert isinstance(amount, RangeAmount)
        assert amount.numeric_value == 350.0
        assert amount.midpoint == 385.0

    def test_range_with_zero_minimum_uses_maximum(self):
        amount = RangeAmount(min_amount=0, max_amount=12.5)

        assert amount.is_positive
        assert amount.numeric_value == 12.5

    def test_range_with_both_ends_non_positive(self):
        assert not RangeAmount(min_amount=0, max_amount=-1).is_positive

    def test_both_shapes_rejected(self):
        with pytest.raises(ValueError):
            parse_cost_amount({"amount": 1.0, "minAmount": 0.5, "maxAmount": 1.5})

    def test_neither_shape_rejected(self):
        with pytest.raises(ValueError):
            parse_cost_amount({"minAmount": 0.5})


class TestCostEntry:
    """Tests for CostEntry parsing."""

    def test_flat_point_entry(self):
        entry = CostEntry.model_validate(make_cost_entry("https://a.example", amount=0.61))

        assert isinstance(entry.price, PointAmount)
        assert entry.weight_unit == "kg"
        assert entry.confidence_score == 0.8

    def test_flat_range_entry(self):
        entry = CostEntry.model_validate(
            make_cost_entry("https://a.example", min_amount=350, max_amount=420, weight_units="ton")
        )

        assert isinstance(entry.price, RangeAmount)
        assert entry.numeric_value == 350

    def test_ambiguous_entry_rejected(self):
        raw = make_cost_entry("https://a.example", amount=1.0)
        raw["minAmount"] = 0.5
        raw["maxAmount"] = 1.5

        with pytest.raises(ValidationError):
            CostEntry.model_validate(raw)

    def test_prompt_dict_is_flat(self):
        entry = CostEntry.model_validate(
            make_cost_entry("https://a.example", min_amount=1.0, max_amount=2.0)
        )

        data = entry.to_prompt_dict()

        assert data["minAmount"] == 1.0
        assert data["maxAmount"] == 2.0
        assert "amount" not in data
        assert data["source"]["url"] == "https://a.example"


class TestCostFactorResult:
    """Tests for CostFactorResult."""

    def test_with_positive_costs(self):
        result = make_result("https://a.example", entries=[
            make_cost_entry("https://a.example", amount=0),
            make_cost_entry("https://b.example", amount=0.7),
        ])

        cleaned = result.with_positive_costs()

        assert [c.numeric_value for c in cleaned.costs] == [0.7]
        assert len(result.costs) == 2


class TestCostEstimate:
    """Tests for CostEstimate serialization."""

    def test_to_dict_round_trips_through_validation(self):
        estimate = CostEstimate(
            cost_in_usd=0.78,
            local_currency_code="AUD",
            sources=[{"url": "https://a.example", "type": "commodity_index", "ageMonths": 0}],
            derivation_type="direct_local",
        )

        data = estimate.to_dict()

        assert data["costInUSD"] == 0.78
        assert data["weightUnits"] == "kg"
        assert data["qualityBand"] == "low"
        assert data["sources"][0]["type"] == "commodity_index"
        assert CostEstimate.model_validate(data).model_dump() == estimate.model_dump()


class TestGeneratedCostMetadata:
    """Tests for coercion of model output."""

    def test_string_booleans(self):
        metadata = GeneratedCostMetadata.model_validate({"costInUSD": 1.0, "isInferred": "true"})

        assert metadata.is_inferred is True

    def test_null_is_inferred(self):
        metadata = GeneratedCostMetadata.model_validate({"costInUSD": 1.0, "isInferred": None})

        assert metadata.is_inferred is False

    def test_unknown_source_type_defaults_to_general(self):
        metadata = GeneratedCostMetadata.model_validate({"costInUSD": 1.0, "sourceType": "blog"})

        assert metadata.source_type == "general"

    def test_negative_cost_rejected(self):
        with pytest.raises(ValidationError):
            GeneratedCostMetadata.model_validate({"costInUSD": -1.0})
