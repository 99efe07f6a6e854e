"""Pydantic request models for the HTTP API."""

from pydantic import BaseModel, ConfigDict, Field

from nutrition_resolver.domain.resolution import (
    ExtractedFood,
    FoodQuery,
    QueryType,
    ResolutionRequest,
)


class ResolveFoodRequest(BaseModel):
    """Single-food resolution request."""

    model_config = ConfigDict(populate_by_name=True)

    query_type: QueryType = Field(alias="queryType")
    value: str = Field(min_length=1)
    quantity: float = Field(ge=0)
    unit: str = Field(min_length=1)
    user_allergens: list[str] = Field(default_factory=list, alias="userAllergens")
    user_diet_preferences: list[str] = Field(
        default_factory=list, alias="userDietPreferences"
    )
    allow_estimates: bool = Field(default=True, alias="allowEstimates")

    def to_domain(self) -> ResolutionRequest:
        """Build the domain request; raises ValueError for an empty query."""
        return ResolutionRequest(
            query=FoodQuery(self.query_type, self.value),
            quantity=self.quantity,
            unit=self.unit,
            user_allergens=tuple(self.user_allergens),
            user_diet_preferences=tuple(self.user_diet_preferences),
            allow_estimates=self.allow_estimates,
        )


class MealItem(BaseModel):
    """One item produced by the upstream food extraction."""

    name: str = Field(min_length=1)
    quantity: float = Field(ge=0)
    unit: str = Field(min_length=1)
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)

    def to_domain(self) -> ExtractedFood:
        return ExtractedFood(
            name=self.name,
            quantity=self.quantity,
            unit=self.unit,
            confidence=self.confidence,
        )


class ResolveMealRequest(BaseModel):
    """Resolution request for every item of a logged meal."""

    model_config = ConfigDict(populate_by_name=True)

    items: list[MealItem]
    user_allergens: list[str] = Field(default_factory=list, alias="userAllergens")
    user_diet_preferences: list[str] = Field(
        default_factory=list, alias="userDietPreferences"
    )
    allow_estimates: bool = Field(default=True, alias="allowEstimates")
