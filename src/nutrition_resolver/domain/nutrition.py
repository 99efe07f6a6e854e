"""Nutrition domain models."""

import math
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace

NUTRIENT_FIELDS: tuple[str, ...] = (
    "calories",
    "protein",
    "carbs",
    "fat",
    "fiber",
    "sugar",
    "saturated_fat",
    "sodium",
    "iron",
    "vitamin_c",
    "calcium",
    "magnesium",
    "vitamin_b12",
    "cholesterol",
)


@dataclass(frozen=True)
class NutrientProfile:
    """Sparse nutrient values; ``None`` means the value was not provided.

    Units: calories in kcal; protein, carbs, fat, fiber, sugar and
    saturated_fat in grams; sodium, iron, vitamin_c, calcium, magnesium and
    cholesterol in milligrams; vitamin_b12 in micrograms.
    """

    calories: float | None = None
    protein: float | None = None
    carbs: float | None = None
    fat: float | None = None
    fiber: float | None = None
    sugar: float | None = None
    saturated_fat: float | None = None
    sodium: float | None = None
    iron: float | None = None
    vitamin_c: float | None = None
    calcium: float | None = None
    magnesium: float | None = None
    vitamin_b12: float | None = None
    cholesterol: float | None = None

    def __post_init__(self) -> None:
        for field in fields(self):
            value = getattr(self, field.name)
            if value is None:
                continue
            if not math.isfinite(value) or value < 0:
                raise ValueError(f"{field.name} must be a non-negative number")

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "NutrientProfile":
        """Build a profile from raw provider values, dropping unusable ones."""
        values: dict[str, float] = {}
        for name in NUTRIENT_FIELDS:
            value = _to_nutrient_value(data.get(name))
            if value is not None:
                values[name] = value
        return cls(**values)

    def present(self) -> dict[str, float]:
        """Return only the nutrients that were provided."""
        return {
            name: getattr(self, name)
            for name in NUTRIENT_FIELDS
            if getattr(self, name) is not None
        }

    def is_empty(self) -> bool:
        return not self.present()

    def scaled(self, factor: float) -> "NutrientProfile":
        """Return a new profile with every present value multiplied."""
        if factor < 0:
            raise ValueError("scale factor must be non-negative")
        return NutrientProfile(
            **{name: value * factor for name, value in self.present().items()}
        )

    def backfilled_from(self, other: "NutrientProfile") -> "NutrientProfile":
        """Fill absent fields from ``other`` without touching present ones."""
        missing = {
            name: value
            for name, value in other.present().items()
            if getattr(self, name) is None
        }
        if not missing:
            return self
        return replace(self, **missing)

    def plus(self, other: "NutrientProfile") -> "NutrientProfile":
        """Sum two profiles; a field stays absent only if absent in both."""
        totals = self.present()
        for name, value in other.present().items():
            totals[name] = totals.get(name, 0.0) + value
        return NutrientProfile(**totals)


@dataclass(frozen=True)
class Basis:
    """Reference quantity a nutrient profile is expressed against."""

    quantity: float
    unit: str

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError("basis quantity must be positive")
        if not self.unit.strip():
            raise ValueError("basis unit must not be empty")

    @property
    def label(self) -> str:
        return f"per {self.quantity:g} {self.unit}"


PER_100_G = Basis(quantity=100.0, unit="g")


@dataclass(frozen=True)
class FoodCandidate:
    """One adapter's unverified claim about a food's nutrients."""

    name: str
    source_id: str
    basis: Basis
    nutrients: NutrientProfile
    confidence: float
    barcode: str | None = None
    brand: str | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("confidence must be between 0 and 1")


@dataclass(frozen=True)
class CanonicalNutrientProfile:
    """Reconciled nutrient profile for one ingredient query."""

    name: str
    nutrients: NutrientProfile
    confidence: float
    provenance: tuple[str, ...]
    basis: Basis
    barcode: str | None = None
    brand: str | None = None


@dataclass(frozen=True)
class ResolvedFoodItem:
    """Canonical profile scaled to the logged portion."""

    name: str
    quantity: float
    unit: str
    nutrients: NutrientProfile
    confidence: float
    sources: tuple[str, ...]
    estimated: bool = False


def _to_nutrient_value(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return number
