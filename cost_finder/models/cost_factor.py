"""Cost factor models for the cost finder.

Structured price data extracted from web search results. Each search hit
carries a ``costFactor`` summary with zero or more cost entries; every
entry is either a single price point or a min/max range.
"""

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


# =============================================================================
# ENUMS
# =============================================================================


class ResultOrigin(str, Enum):
    """Which search mode produced a result."""

    PREFERRED = "preferred"  # Curated-domain search
    GENERAL = "general"      # Open web search


# =============================================================================
# COST AMOUNT (TAGGED VARIANT)
# =============================================================================


class PointAmount(BaseModel):
    """Single observed price for exactly one weight unit."""

    kind: Literal["point"] = "point"
    amount: float

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    @property
    def numeric_value(self) -> float:
        return self.amount

    @property
    def midpoint(self) -> float:
        return self.amount


class RangeAmount(BaseModel):
    """Observed min/max price range for exactly one weight unit."""

    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["range"] = "range"
    min_amount: float = Field(..., alias="minAmount")
    max_amount: float = Field(..., alias="maxAmount")

    @property
    def is_positive(self) -> bool:
        """A range is unusable only when both ends are non-positive."""
        return self.min_amount > 0 or self.max_amount > 0

    @property
    def numeric_value(self) -> float:
        """Lower end of the range, or the upper end when the lower is not positive."""
        return self.min_amount if self.min_amount > 0 else self.max_amount

    @property
    def midpoint(self) -> float:
        return (self.min_amount + self.max_amount) / 2


CostAmount = Annotated[Union[PointAmount, RangeAmount], Field(discriminator="kind")]


def parse_cost_amount(data: Dict[str, Any]) -> Union[PointAmount, RangeAmount]:
    """Build the amount variant from a flat provider cost entry.

    Raises:
        ValueError: If the entry has both a single amount and a range, or neither.
    """
    amount = data.get("amount")
    min_amount = data.get("minAmount", data.get("min_amount"))
    max_amount = data.get("maxAmount", data.get("max_amount"))
    has_range = min_amount is not None or max_amount is not None

    if amount is not None and has_range:
        raise ValueError("cost entry has both amount and minAmount/maxAmount")
    if amount is not None:
        return PointAmount(amount=amount)
    if min_amount is not None and max_amount is not None:
        return RangeAmount(min_amount=min_amount, max_amount=max_amount)
    raise ValueError("cost entry needs either amount or both minAmount and maxAmount")


# =============================================================================
# COST ENTRY
# =============================================================================


class CostSource(BaseModel):
    """Page a cost entry was read from."""

    url: str
    text: str = ""


class CostEntry(BaseModel):
    """One price observation inside a cost factor summary."""

    model_config = ConfigDict(populate_by_name=True)

    price: CostAmount
    currency: str
    weight_unit: str = Field(
        ...,
        validation_alias=AliasChoices("weightUnits", "weightUnit", "weight_unit"),
        serialization_alias="weightUnits",
        description="Weight unit exactly as stated in the source (kg, ton, lb...)"
    )
    evaluation_method: Optional[str] = Field(default=None, alias="evaluationMethod")
    assumptions: Optional[str] = None
    confidence_score: float = Field(
        default=0.0,
        ge=0,
        le=1,
        validation_alias=AliasChoices("score", "confidenceScore", "confidence_score"),
        serialization_alias="score",
    )
    score_justification: Optional[str] = Field(default=None, alias="scoreJustification")
    source: CostSource

    @model_validator(mode="before")
    @classmethod
    def _split_amount(cls, data: Any) -> Any:
        """Accept the flat provider shape (amount / minAmount / maxAmount)."""
        if isinstance(data, dict) and "price" not in data:
            data = dict(data)
            data["price"] = parse_cost_amount(data)
            for key in ("amount", "minAmount", "maxAmount", "min_amount", "max_amount"):
                data.pop(key, None)
        return data

    @property
    def is_positive(self) -> bool:
        return self.price.is_positive

    @property
    def numeric_value(self) -> float:
        return self.price.numeric_value

    def to_prompt_dict(self) -> Dict[str, Any]:
        """Flat camelCase view used when showing results to the model."""
        data: Dict[str, Any] = {}
        if isinstance(self.price, PointAmount):
            data["amount"] = self.price.amount
        else:
            data["minAmount"] = self.price.min_amount
            data["maxAmount"] = self.price.max_amount
        data.update({
            "currency": self.currency,
            "weightUnits": self.weight_unit,
            "evaluationMethod": self.evaluation_method,
            "assumptions": self.assumptions,
            "score": self.confidence_score,
            "scoreJustification": self.score_justification,
            "source": {"url": self.source.url, "text": self.source.text},
        })
        return {key: value for key, value in data.items() if value is not None}


# =============================================================================
# SEARCH RESULT
# =============================================================================


class CostFactorResult(BaseModel):
    """Structured cost summary extracted from one search result."""

    model_config = ConfigDict(populate_by_name=True)

    ingredient_name: str = Field(default="", alias="ingredientName")
    location_name: str = Field(default="", alias="locationName")
    costs: List[CostEntry] = Field(default_factory=list, alias="cost")
    text: str = ""
    url: Optional[str] = None

    # Assigned while gathering
    id: Optional[int] = None
    origin: Optional[ResultOrigin] = Field(default=None, alias="sourceType")

    @property
    def source_urls(self) -> List[str]:
        return [cost.source.url for cost in self.costs]

    def with_positive_costs(self) -> "CostFactorResult":
        """Copy of this result keeping only strictly positive cost entries."""
        return self.model_copy(update={"costs": [c for c in self.costs if c.is_positive]})

    def to_prompt_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "sourceType": self.origin.value if self.origin else None,
            "ingredientName": self.ingredient_name,
            "locationName": self.location_name,
            "cost": [cost.to_prompt_dict() for cost in self.costs],
            "text": self.text,
        }
        if self.url:
            data["url"] = self.url
        return data
