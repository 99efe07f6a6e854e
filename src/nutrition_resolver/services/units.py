"""Unit normalization to grams.

Volumetric units use a fixed density of roughly 1 g/ml regardless of the
ingredient, so a cup of flour weighs the same as a cup of water here. This is
a known approximation, not a density model.
"""

from nutrition_resolver.domain.errors import UnconvertibleUnitError

GRAMS_PER_UNIT: dict[str, float] = {
    "g": 1.0,
    "mg": 0.001,
    "kg": 1000.0,
    "oz": 28.35,
    "lb": 453.59,
    "cup": 240.0,
    "tbsp": 15.0,
    "tsp": 5.0,
}

# Rough weights for count units, used only for flagged estimates.
ESTIMATED_GRAMS_PER_UNIT: dict[str, float] = {
    "slice": 30.0,
    "piece": 150.0,
    "medium": 150.0,
    "large": 200.0,
    "small": 100.0,
    "ear": 90.0,
}
DEFAULT_ESTIMATED_GRAMS = 100.0

_UNIT_ALIASES: dict[str, str] = {
    "gram": "g",
    "grams": "g",
    "gr": "g",
    "milligram": "mg",
    "milligrams": "mg",
    "kilogram": "kg",
    "kilograms": "kg",
    "kgs": "kg",
    "ounce": "oz",
    "ounces": "oz",
    "pound": "lb",
    "pounds": "lb",
    "lbs": "lb",
    "cups": "cup",
    "tablespoon": "tbsp",
    "tablespoons": "tbsp",
    "tbs": "tbsp",
    "teaspoon": "tsp",
    "teaspoons": "tsp",
    "pieces": "piece",
    "pcs": "piece",
    "pc": "piece",
    "servings": "serving",
    "slices": "slice",
    "ears": "ear",
}


def normalize_unit(unit: str) -> str:
    """Return the canonical spelling of a unit."""
    cleaned = unit.strip().lower().rstrip(".")
    return _UNIT_ALIASES.get(cleaned, cleaned)


def is_mass_convertible(unit: str) -> bool:
    return normalize_unit(unit) in GRAMS_PER_UNIT


def to_grams(quantity: float, unit: str) -> float | None:
    """Convert a quantity to grams, or return None when the unit is unknown."""
    if quantity < 0:
        raise ValueError("quantity must be non-negative")
    factor = GRAMS_PER_UNIT.get(normalize_unit(unit))
    if factor is None:
        return None
    return quantity * factor


def estimated_grams(quantity: float, unit: str) -> float:
    """Best-guess grams for any unit, falling back to a 100 g portion."""
    grams = to_grams(quantity, unit)
    if grams is not None:
        return grams
    weight = ESTIMATED_GRAMS_PER_UNIT.get(normalize_unit(unit), DEFAULT_ESTIMATED_GRAMS)
    return quantity * weight


def from_grams(grams: float, unit: str) -> float:
    """Express a gram amount in a mass-convertible unit."""
    if grams < 0:
        raise ValueError("grams must be non-negative")
    canonical = normalize_unit(unit)
    factor = GRAMS_PER_UNIT.get(canonical)
    if factor is None:
        raise UnconvertibleUnitError("g", unit)
    return grams / factor


def scale_ratio(
    target_quantity: float, target_unit: str, base_quantity: float, base_unit: str
) -> float:
    """Return how many base amounts the target amount represents.

    Mass-convertible units are compared in grams. Any other unit only scales
    against the very same unit; everything else raises instead of guessing.
    """
    if base_quantity <= 0:
        raise ValueError("base quantity must be positive")
    target_grams = to_grams(target_quantity, target_unit)
    base_grams = to_grams(base_quantity, base_unit)
    if target_grams is not None and base_grams is not None:
        return target_grams / base_grams
    if normalize_unit(target_unit) == normalize_unit(base_unit):
        return target_quantity / base_quantity
    raise UnconvertibleUnitError(base_unit, target_unit)
