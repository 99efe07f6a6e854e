"""Tests for unit normalization."""

import pytest

from nutrition_resolver.domain.errors import UnconvertibleUnitError
from nutrition_resolver.services.units import (
    estimated_grams,
    from_grams,
    is_mass_convertible,
    normalize_unit,
    scale_ratio,
    to_grams,
)


def test_to_grams_covers_mass_and_volume_table() -> None:
    assert to_grams(2, "kg") == 2000
    assert to_grams(1, "oz") == pytest.approx(28.35)
    assert to_grams(2, "lb") == pytest.approx(907.18)
    assert to_grams(1, "cup") == 240
    assert to_grams(2, "tbsp") == 30
    assert to_grams(3, "tsp") == 15
    assert to_grams(500, "mg") == pytest.approx(0.5)


def test_unit_aliases_are_normalized() -> None:
    assert normalize_unit(" Cups ") == "cup"
    assert normalize_unit("Tablespoons") == "tbsp"
    assert normalize_unit("lbs.") == "lb"
    assert normalize_unit("pcs") == "piece"
    assert to_grams(1, "Grams") == 1


def test_unknown_units_are_unconvertible() -> None:
    assert to_grams(1, "piece") is None
    assert to_grams(1, "serving") is None
    assert not is_mass_convertible("slice")
    assert is_mass_convertible("ounces")


def test_negative_quantity_is_rejected() -> None:
    with pytest.raises(ValueError):
        to_grams(-1, "g")


def test_from_grams_inverts_table() -> None:
    assert from_grams(56.7, "oz") == pytest.approx(2)
    with pytest.raises(UnconvertibleUnitError):
        from_grams(100, "piece")


def test_scale_ratio_compares_mass_units_in_grams() -> None:
    assert scale_ratio(150, "g", 100, "g") == pytest.approx(1.5)
    assert scale_ratio(1, "kg", 100, "g") == pytest.approx(10)
    assert scale_ratio(1, "cup", 100, "g") == pytest.approx(2.4)


def test_scale_ratio_falls_back_to_identical_units() -> None:
    assert scale_ratio(3, "slices", 1, "slice") == pytest.approx(3)
    assert scale_ratio(2, "serving", 1, "Serving") == pytest.approx(2)


def test_scale_ratio_refuses_unrelated_units() -> None:
    with pytest.raises(UnconvertibleUnitError):
        scale_ratio(1, "piece", 100, "g")
    with pytest.raises(UnconvertibleUnitError):
        scale_ratio(1, "piece", 1, "serving")


def test_scale_ratio_requires_positive_base() -> None:
    with pytest.raises(ValueError):
        scale_ratio(1, "g", 0, "g")


def test_estimated_grams_for_count_units() -> None:
    assert estimated_grams(2, "pieces") == 300
    assert estimated_grams(3, "slices") == 90
    assert estimated_grams(2, "ears") == 180
    assert estimated_grams(1, "small") == 100
    assert estimated_grams(1, "bowl") == 100
    assert estimated_grams(1, "cup") == 240
