"""JSON payload builders for API responses."""

from nutrition_resolver.domain.discovery import DiscoveryTask
from nutrition_resolver.domain.nutrition import NutrientProfile, ResolvedFoodItem
from nutrition_resolver.domain.resolution import (
    MealResolution,
    ResolutionResult,
    UnresolvedResult,
)
from nutrition_resolver.domain.scoring import (
    AllergenAssessment,
    DietCompatibility,
    NutritionScore,
)

_NUTRIENT_KEYS = {
    "saturated_fat": "saturatedFat",
    "vitamin_c": "vitaminC",
    "vitamin_b12": "vitaminB12",
}


def nutrients_payload(nutrients: NutrientProfile) -> dict[str, float]:
    return {
        _NUTRIENT_KEYS.get(name, name): round(value, 4)
        for name, value in nutrients.present().items()
    }


def item_payload(item: ResolvedFoodItem) -> dict[str, object]:
    return {
        "name": item.name,
        "quantity": item.quantity,
        "unit": item.unit,
        "nutrients": nutrients_payload(item.nutrients),
        "confidence": item.confidence,
        "sources": list(item.sources),
        "estimated": item.estimated,
    }


def score_payload(score: NutritionScore) -> dict[str, object]:
    return {
        "score": score.score,
        "grade": score.grade,
        "macroScore": score.macro_score,
        "fiberScore": score.fiber_score,
        "microScore": score.micro_score,
        "moderationScore": score.moderation_score,
        "processingPenalty": score.processing_penalty,
    }


def diets_payload(compatibility: DietCompatibility) -> dict[str, object]:
    return {
        diet: {"percentage": verdict.percentage, "reason": verdict.reason}
        for diet, verdict in compatibility.verdicts.items()
    }


def allergens_payload(assessment: AllergenAssessment) -> dict[str, object]:
    return {
        "isAllergenFree": assessment.is_allergen_free,
        "detectedAllergens": list(assessment.detected_allergens),
        "severity": assessment.severity.value if assessment.severity else None,
        "warnings": list(assessment.warnings),
        "otherAllergens": list(assessment.other_allergens),
    }


def resolution_payload(result: ResolutionResult) -> dict[str, object]:
    return {
        "resolvedItem": item_payload(result.resolved_item),
        "nutritionScore": score_payload(result.nutrition_score),
        "dietCompatibility": diets_payload(result.diet_compatibility),
        "allergenAssessment": allergens_payload(result.allergen_assessment),
        "suggestions": list(result.suggestions),
    }


def unresolved_payload(result: UnresolvedResult) -> dict[str, object]:
    return {
        "unresolved": result.unresolved,
        "queued": result.queued,
        "ingredientKey": result.ingredient_key,
        "status": result.status.value,
    }


def meal_payload(meal: MealResolution) -> dict[str, object]:
    return {
        "items": [item_payload(item) for item in meal.items],
        "unresolved": [unresolved_payload(item) for item in meal.unresolved],
        "totals": nutrients_payload(meal.totals),
        "nutritionScore": score_payload(meal.nutrition_score),
        "dietCompatibility": diets_payload(meal.diet_compatibility),
        "allergenAssessment": allergens_payload(meal.allergen_assessment),
        "suggestions": list(meal.suggestions),
    }


def task_payload(task: DiscoveryTask) -> dict[str, object]:
    """Public view of a discovery task; the resolved profile stays internal."""
    return {
        "ingredientKey": task.ingredient_key,
        "requestedBy": task.requested_by,
        "status": task.status.value,
        "attempts": task.attempts,
        "lastAttemptAt": (
            task.last_attempt_at.isoformat() if task.last_attempt_at else None
        ),
        "nextAttemptAt": (
            task.next_attempt_at.isoformat() if task.next_attempt_at else None
        ),
        "lastError": task.last_error,
    }
