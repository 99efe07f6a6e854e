"""Resolution flow from a food query to a scored, portioned item."""

import asyncio
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field

from nutrition_resolver.domain.discovery import DiscoveryStatus
from nutrition_resolver.domain.errors import NoCandidateFoundError
from nutrition_resolver.domain.nutrition import (
    CanonicalNutrientProfile,
    NutrientProfile,
    ResolvedFoodItem,
)
from nutrition_resolver.domain.resolution import (
    ExtractedFood,
    FoodQuery,
    MealResolution,
    QueryType,
    ResolutionRequest,
    ResolutionResult,
    UnresolvedResult,
)
from nutrition_resolver.services.allergens import assess_allergens
from nutrition_resolver.services.cache import Cache
from nutrition_resolver.services.diets import DietFood, assess_diets
from nutrition_resolver.services.discovery import DiscoveryQueue
from nutrition_resolver.services.portions import PortionScaler
from nutrition_resolver.services.reconciliation import reconcile
from nutrition_resolver.services.scoring import health_suggestions, score_nutrition
from nutrition_resolver.services.sources import SourceFanOut

_logger = logging.getLogger(__name__)

ESTIMATE_SUGGESTION = (
    "Portion size was estimated from an unrelated unit; "
    "weigh the food for exact numbers."
)


@dataclass
class ResolutionService:
    """Resolves foods against the sources and scores the result."""

    fan_out: SourceFanOut
    queue: DiscoveryQueue
    cache: Cache
    scaler: PortionScaler = field(default_factory=PortionScaler)
    acceptance_threshold: float = 0.5
    profile_ttl_seconds: int = 60 * 60 * 24
    request_timeout_seconds: float | None = 8.0

    async def resolve_profile(self, query: FoodQuery) -> CanonicalNutrientProfile:
        """Return the canonical per-basis profile for a query.

        Raises ``NoCandidateFoundError`` when no source produced a profile
        at or above the acceptance threshold.
        """
        key = query.ingredient_key
        cached = self.cache.get(key)
        if isinstance(cached, CanonicalNutrientProfile):
            return cached
        task = self.queue.get(key)
        if (
            task is not None
            and task.status is DiscoveryStatus.RESOLVED
            and task.result is not None
        ):
            self.cache.set(key, task.result, self.profile_ttl_seconds)
            return task.result

        candidates = await self.fan_out.search(
            query, deadline_seconds=self.request_timeout_seconds
        )
        profile = reconcile(candidates)
        if profile is None or profile.confidence < self.acceptance_threshold:
            raise NoCandidateFoundError(key)
        self.cache.set(key, profile, self.profile_ttl_seconds)
        return profile

    async def resolve(
        self, request: ResolutionRequest
    ) -> ResolutionResult | UnresolvedResult:
        """Resolve one food, or queue it for discovery when it is unknown."""
        validate_portion(request.quantity, request.unit)
        item = await self._resolve_item(
            request.query,
            request.quantity,
            request.unit,
            strict=not request.allow_estimates,
            requested_by=request.requested_by,
        )
        if isinstance(item, UnresolvedResult):
            return item
        score = score_nutrition(item.nutrients)
        suggestions = health_suggestions(score, item.nutrients)
        if item.estimated:
            suggestions.append(ESTIMATE_SUGGESTION)
        return ResolutionResult(
            resolved_item=item,
            nutrition_score=score,
            diet_compatibility=assess_diets(
                [DietFood(item.name, item.nutrients)],
                request.user_diet_preferences or None,
            ),
            allergen_assessment=assess_allergens(
                [item.name], request.user_allergens
            ),
            suggestions=tuple(suggestions),
        )

    async def resolve_meal(
        self,
        foods: Sequence[ExtractedFood],
        user_allergens: Sequence[str] = (),
        user_diet_preferences: Sequence[str] = (),
        *,
        allow_estimates: bool = True,
        requested_by: str = "meal",
    ) -> MealResolution:
        """Resolve every extracted item of a meal and score the meal as a whole.

        Unknown items are queued for discovery and listed as unresolved; they
        do not fail the meal.
        """
        for food in foods:
            validate_portion(food.quantity, food.unit)
        outcomes = await asyncio.gather(
            *(
                self._resolve_item(
                    FoodQuery(QueryType.TEXT, food.name),
                    food.quantity,
                    food.unit,
                    strict=not allow_estimates,
                    requested_by=requested_by,
                )
                for food in foods
            )
        )
        items = [item for item in outcomes if isinstance(item, ResolvedFoodItem)]
        unresolved = [item for item in outcomes if isinstance(item, UnresolvedResult)]

        totals = NutrientProfile()
        for item in items:
            totals = totals.plus(item.nutrients)
        score = score_nutrition(totals)
        suggestions = health_suggestions(score, totals)
        if any(item.estimated for item in items):
            suggestions.append(ESTIMATE_SUGGESTION)
        return MealResolution(
            items=tuple(items),
            unresolved=tuple(unresolved),
            totals=totals,
            nutrition_score=score,
            diet_compatibility=assess_diets(
                [DietFood(item.name, item.nutrients) for item in items],
                user_diet_preferences or None,
            ),
            allergen_assessment=assess_allergens(
                [item.name for item in items], user_allergens
            ),
            suggestions=tuple(suggestions),
        )

    async def _resolve_item(
        self,
        query: FoodQuery,
        quantity: float,
        unit: str,
        *,
        strict: bool,
        requested_by: str,
    ) -> ResolvedFoodItem | UnresolvedResult:
        try:
            profile = await self.resolve_profile(query)
        except NoCandidateFoundError as exc:
            _logger.info("%s; queueing discovery", exc)
            task = self.queue.enqueue(exc.ingredient_key, requested_by)
            return UnresolvedResult(
                ingredient_key=task.ingredient_key,
                status=task.status,
                queued=task.is_active,
            )
        return self.scaler.scale(profile, quantity, unit, strict=strict)


def validate_portion(quantity: float, unit: str) -> None:
    """Reject portions that can never be scaled."""
    if not math.isfinite(quantity) or quantity < 0:
        raise ValueError("quantity must be a non-negative number")
    if not unit.strip():
        raise ValueError("unit must not be empty")
