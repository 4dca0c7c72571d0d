"""Target model for the cost finder.

A Target identifies what is being priced: one ingredient at one location.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Target(BaseModel):
    """Ingredient/location pair to price.

    Immutable; constructed by the caller and used as the cache identity.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ingredient_name: str = Field(..., min_length=1, alias="ingredientName")
    location_name: str = Field(..., min_length=1, alias="locationName")
    location_code: str = Field(..., min_length=1, alias="locationCode")
    lifecycle_stage: Optional[str] = Field(default=None, alias="lifecycleStage")
    year: Optional[int] = Field(default=None)

    @property
    def cache_key(self) -> str:
        """Cache key: lowercased ingredient name and location code."""
        return make_cache_key(self.ingredient_name, self.location_code)


def make_cache_key(ingredient_name: str, location_code: str) -> str:
    """Build the ``ingredient::location`` cache key."""
    return f"{ingredient_name.lower()}::{location_code}"
