"""Request and result models for the resolution flow."""

import re
from dataclasses import dataclass, field
from enum import StrEnum

from nutrition_resolver.domain.discovery import DiscoveryStatus
from nutrition_resolver.domain.nutrition import NutrientProfile, ResolvedFoodItem
from nutrition_resolver.domain.scoring import (
    AllergenAssessment,
    DietCompatibility,
    NutritionScore,
)

BARCODE_PREFIX = "barcode:"

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


class QueryType(StrEnum):
    """Kinds of food identification a caller can submit."""

    BARCODE = "barcode"
    TEXT = "text"


def normalize_name(name: str) -> str:
    """Lowercase, trim and strip punctuation from a food name."""
    cleaned = _PUNCTUATION.sub(" ", name.lower())
    return _WHITESPACE.sub(" ", cleaned).strip()


def normalize_barcode(code: str) -> str:
    """Keep only the digits of a scanned barcode."""
    return "".join(ch for ch in code if ch.isdigit())


@dataclass(frozen=True)
class FoodQuery:
    """A single food lookup by barcode or free text."""

    query_type: QueryType
    value: str

    def __post_init__(self) -> None:
        if not self.normalized_value:
            raise ValueError("query value must not be empty")

    @property
    def normalized_value(self) -> str:
        if self.query_type is QueryType.BARCODE:
            return normalize_barcode(self.value)
        return normalize_name(self.value)

    @property
    def ingredient_key(self) -> str:
        if self.query_type is QueryType.BARCODE:
            return f"{BARCODE_PREFIX}{self.normalized_value}"
        return self.normalized_value

    @classmethod
    def from_ingredient_key(cls, key: str) -> "FoodQuery":
        if key.startswith(BARCODE_PREFIX):
            return cls(QueryType.BARCODE, key.removeprefix(BARCODE_PREFIX))
        return cls(QueryType.TEXT, key)


@dataclass(frozen=True)
class ResolutionRequest:
    """Input from the meal-logging flow for one food."""

    query: FoodQuery
    quantity: float
    unit: str
    user_allergens: tuple[str, ...] = ()
    user_diet_preferences: tuple[str, ...] = ()
    allow_estimates: bool = True
    requested_by: str = "resolve"


@dataclass(frozen=True)
class ResolutionResult:
    """Fully populated resolution of one food."""

    resolved_item: ResolvedFoodItem
    nutrition_score: NutritionScore
    diet_compatibility: DietCompatibility
    allergen_assessment: AllergenAssessment
    suggestions: tuple[str, ...] = ()


@dataclass(frozen=True)
class UnresolvedResult:
    """Signal that a food is unknown and has been queued for discovery."""

    ingredient_key: str
    status: DiscoveryStatus
    unresolved: bool = True
    queued: bool = True


@dataclass(frozen=True)
class ExtractedFood:
    """One item produced by the upstream image/voice/text extraction."""

    name: str
    quantity: float
    unit: str
    confidence: float | None = None


@dataclass(frozen=True)
class MealResolution:
    """Resolution of every item in a logged meal."""

    items: tuple[ResolvedFoodItem, ...]
    unresolved: tuple[UnresolvedResult, ...]
    totals: NutrientProfile
    nutrition_score: NutritionScore
    diet_compatibility: DietCompatibility
    allergen_assessment: AllergenAssessment
    suggestions: tuple[str, ...] = field(default_factory=tuple)
