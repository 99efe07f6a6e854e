"""Portion scaling of canonical profiles."""

import logging
from dataclasses import dataclass

from nutrition_resolver.domain.errors import UnconvertibleUnitError
from nutrition_resolver.domain.nutrition import (
    CanonicalNutrientProfile,
    ResolvedFoodItem,
)
from nutrition_resolver.services.units import estimated_grams, scale_ratio

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PortionScaler:
    """Scales a canonical profile to the quantity a user actually logged."""

    estimate_confidence_factor: float = 0.5

    def scale(
        self,
        profile: CanonicalNutrientProfile,
        quantity: float,
        unit: str,
        *,
        strict: bool = False,
    ) -> ResolvedFoodItem:
        """Return a new item with nutrients for ``quantity`` ``unit``.

        When the units cannot be related, strict mode raises
        ``UnconvertibleUnitError``. Otherwise both amounts are converted with
        rough per-unit weights (a slice is 30 g, a piece 150 g, anything
        unknown 100 g) and the item is flagged as an unverified estimate at
        reduced confidence.
        """
        if quantity < 0:
            raise ValueError("quantity must be non-negative")
        basis = profile.basis
        try:
            factor = scale_ratio(quantity, unit, basis.quantity, basis.unit)
        except UnconvertibleUnitError:
            if strict:
                raise
            factor = estimated_grams(quantity, unit) / estimated_grams(
                basis.quantity, basis.unit
            )
            _logger.info(
                "Estimating %s %s of %s against %s",
                quantity,
                unit,
                profile.name,
                basis.label,
            )
            return ResolvedFoodItem(
                name=profile.name,
                quantity=quantity,
                unit=unit,
                nutrients=profile.nutrients.scaled(factor),
                confidence=round(
                    profile.confidence * self.estimate_confidence_factor, 4
                ),
                sources=profile.provenance,
                estimated=True,
            )
        return ResolvedFoodItem(
            name=profile.name,
            quantity=quantity,
            unit=unit,
            nutrients=profile.nutrients.scaled(factor),
            confidence=profile.confidence,
            sources=profile.provenance,
        )
