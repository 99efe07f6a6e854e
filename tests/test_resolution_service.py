"""Tests for the resolution service."""

import asyncio

import pytest

from nutrition_resolver.domain.discovery import DiscoveryStatus, DiscoveryTask
from nutrition_resolver.domain.errors import UnconvertibleUnitError
from nutrition_resolver.domain.nutrition import (
    PER_100_G,
    CanonicalNutrientProfile,
    NutrientProfile,
)
from nutrition_resolver.domain.resolution import (
    ExtractedFood,
    FoodQuery,
    QueryType,
    ResolutionRequest,
    ResolutionResult,
    UnresolvedResult,
)
from nutrition_resolver.services.cache import InMemoryCache
from nutrition_resolver.services.resolution import (
    ESTIMATE_SUGGESTION,
    ResolutionService,
    validate_portion,
)


def _text(
    value: str, quantity: float = 100, unit: str = "g", **kwargs: object
) -> ResolutionRequest:
    return ResolutionRequest(FoodQuery(QueryType.TEXT, value), quantity, unit, **kwargs)


def test_barcode_resolution_scales_portion(resolution_service) -> None:
    request = ResolutionRequest(
        FoodQuery(QueryType.BARCODE, "012345678905"), 150, "g"
    )

    result = asyncio.run(resolution_service.resolve(request))

    assert isinstance(result, ResolutionResult)
    item = result.resolved_item
    assert item.name == "Apple juice"
    assert item.nutrients.calories == pytest.approx(78)
    assert item.confidence == 0.8
    assert item.sources == ("curated",)
    assert item.estimated is False


def test_agreeing_sources_raise_confidence(resolution_service) -> None:
    result = asyncio.run(resolution_service.resolve(_text("Banana")))

    assert isinstance(result, ResolutionResult)
    assert result.resolved_item.confidence == pytest.approx(0.95)
    assert result.resolved_item.sources == ("curated", "openfoodfacts")
    assert 0 <= result.nutrition_score.score <= 100


def test_unknown_food_is_queued_once(resolution_service, discovery_queue) -> None:
    first = asyncio.run(resolution_service.resolve(_text("xyzfood123")))
    second = asyncio.run(resolution_service.resolve(_text("XYZFood123 ")))

    assert isinstance(first, UnresolvedResult)
    assert first.ingredient_key == "xyzfood123"
    assert first.status is DiscoveryStatus.PENDING
    assert first.queued is True
    assert second == first
    tasks = discovery_queue.list_tasks()
    assert [task.ingredient_key for task in tasks] == ["xyzfood123"]
    assert tasks[0].requested_by == "resolve"


def test_profiles_are_cached(resolution_service, curated_source) -> None:
    asyncio.run(resolution_service.resolve(_text("banana")))
    asyncio.run(resolution_service.resolve(_text("banana", 50)))

    assert curated_source.calls == ["banana"]


def test_low_confidence_match_is_not_accepted(fan_out, discovery_queue) -> None:
    service = ResolutionService(
        fan_out=fan_out,
        queue=discovery_queue,
        cache=InMemoryCache(),
        acceptance_threshold=0.96,
    )

    result = asyncio.run(service.resolve(_text("banana")))

    assert isinstance(result, UnresolvedResult)
    assert discovery_queue.get("banana") is not None


def test_discovered_profile_is_served(
    resolution_service, discovery_repository, curated_source
) -> None:
    profile = CanonicalNutrientProfile(
        name="Mystery stew",
        nutrients=NutrientProfile(calories=120, protein=8),
        confidence=0.4,
        provenance=("ai_estimate",),
        basis=PER_100_G,
    )
    discovery_repository.add(
        DiscoveryTask(
            ingredient_key="mystery stew",
            requested_by="resolve",
            status=DiscoveryStatus.RESOLVED,
            attempts=3,
            result=profile,
        )
    )

    result = asyncio.run(resolution_service.resolve(_text("Mystery Stew", 200)))

    assert isinstance(result, ResolutionResult)
    assert result.resolved_item.nutrients.calories == pytest.approx(240)
    assert result.resolved_item.confidence == 0.4
    assert curated_source.calls == []


def test_failed_discovery_is_not_requeued(
    resolution_service, discovery_repository
) -> None:
    discovery_repository.add(
        DiscoveryTask(
            ingredient_key="xyzfood123",
            requested_by="resolve",
            status=DiscoveryStatus.FAILED,
            attempts=3,
        )
    )

    result = asyncio.run(resolution_service.resolve(_text("xyzfood123")))

    assert isinstance(result, UnresolvedResult)
    assert result.status is DiscoveryStatus.FAILED
    assert result.queued is False


def test_strict_mode_rejects_unrelated_units(resolution_service) -> None:
    request = _text("banana", 2, "piece", allow_estimates=False)

    with pytest.raises(UnconvertibleUnitError):
        asyncio.run(resolution_service.resolve(request))


def test_estimated_portion_is_flagged(resolution_service) -> None:
    result = asyncio.run(resolution_service.resolve(_text("banana", 2, "piece")))

    assert isinstance(result, ResolutionResult)
    assert result.resolved_item.estimated is True
    assert result.resolved_item.confidence == pytest.approx(0.475)
    assert ESTIMATE_SUGGESTION in result.suggestions


def test_allergens_and_diets_use_user_preferences(resolution_service) -> None:
    request = _text(
        "peanut butter",
        32,
        "g",
        user_allergens=("peanuts",),
        user_diet_preferences=("vegan",),
    )

    result = asyncio.run(resolution_service.resolve(request))

    assert isinstance(result, ResolutionResult)
    assert result.allergen_assessment.detected_allergens == ("peanuts",)
    assert result.allergen_assessment.severity == "high"
    assert result.diet_compatibility["vegan"].percentage == 100
    assert list(result.diet_compatibility.verdicts) == ["vegan"]


@pytest.mark.parametrize(
    ("quantity", "unit"),
    [(-1, "g"), (float("nan"), "g"), (1, "  ")],
)
def test_invalid_portions_are_rejected(resolution_service, quantity, unit) -> None:
    with pytest.raises(ValueError):
        validate_portion(quantity, unit)
    with pytest.raises(ValueError):
        asyncio.run(resolution_service.resolve(_text("banana", quantity, unit)))


def test_meal_resolution_totals_and_unresolved(
    resolution_service, discovery_queue
) -> None:
    meal = asyncio.run(
        resolution_service.resolve_meal(
            [
                ExtractedFood("banana", 120, "g", confidence=0.9),
                ExtractedFood("peanut butter", 32, "g"),
                ExtractedFood("xyzfood123", 1, "serving"),
            ]
        )
    )

    assert [item.name for item in meal.items] == [
        "Bananas, raw",
        "Peanut butter, smooth",
    ]
    assert [item.ingredient_key for item in meal.unresolved] == ["xyzfood123"]
    assert meal.totals.calories == pytest.approx(89 * 1.2 + 588 * 0.32)
    assert meal.allergen_assessment.detected_allergens == ("peanuts",)
    assert "vegan" in meal.diet_compatibility
    assert discovery_queue.get("xyzfood123").requested_by == "meal"
