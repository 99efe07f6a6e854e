"""Tests for allergen assessment."""

from nutrition_resolver.domain.scoring import AllergenSeverity
from nutrition_resolver.services.allergens import (
    assess_allergens,
    canonical_allergen,
    find_allergens,
)


def test_declared_allergen_is_detected() -> None:
    result = assess_allergens(["peanut butter", "bread"], ["peanuts"])

    assert result.is_allergen_free is False
    assert result.detected_allergens == ("peanuts",)
    assert result.severity == "high"
    assert result.severity is AllergenSeverity.SEVERE
    assert result.other_allergens == ("wheat",)


def test_every_allergen_is_listed_without_declarations() -> None:
    result = assess_allergens(["shrimp pad thai with peanuts and egg"])

    assert result.detected_allergens == ("peanuts", "eggs", "shellfish")
    assert result.severity is AllergenSeverity.SEVERE
    assert len(result.warnings) == 3


def test_severity_is_the_maximum_detected() -> None:
    result = assess_allergens(["scrambled eggs with cheese"])

    assert result.detected_allergens == ("dairy", "eggs")
    assert result.severity is AllergenSeverity.MODERATE


def test_exclusion_phrases() -> None:
    assert find_allergens("grilled eggplant") == []
    assert find_allergens("nutmeg") == []
    assert find_allergens("butternut squash soup") == []
    assert "dairy" not in find_allergens("almond milk")
    assert "nuts" in find_allergens("almond milk")


def test_allergen_free() -> None:
    result = assess_allergens(["apple", "rice"], ["peanuts"])

    assert result.is_allergen_free
    assert result.severity is None
    assert result.detected_allergens == ()
    assert result.warnings == ()


def test_declared_aliases_and_unknown_names() -> None:
    assert canonical_allergen("Gluten") == "wheat"
    assert canonical_allergen("tree nuts") == "nuts"
    assert canonical_allergen("dairy-free") == "dairy"

    result = assess_allergens(["pasta"], ["gluten", "kiwi"])

    assert result.detected_allergens == ("wheat",)
    assert any("kiwi" in warning for warning in result.warnings)
