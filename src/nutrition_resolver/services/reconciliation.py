"""Reconciliation of disagreeing source candidates into one profile.

All cross-source confidence arithmetic lives here; the portion scaler owns
the only other confidence adjustment.
"""

import logging
from dataclasses import replace

from nutrition_resolver.domain.nutrition import (
    PER_100_G,
    CanonicalNutrientProfile,
    FoodCandidate,
)
from nutrition_resolver.domain.resolution import normalize_name
from nutrition_resolver.services.units import normalize_unit, scale_ratio, to_grams

AGREEMENT_BOOST = 0.05
AGREEMENT_TOLERANCE = 0.15
MAX_CONFIDENCE = 1.0

_logger = logging.getLogger(__name__)


def reconcile(candidates: list[FoodCandidate]) -> CanonicalNutrientProfile | None:
    """Merge candidates for one query into a canonical profile.

    Returns None when no candidate carries any nutrient value.
    """
    usable = [
        _to_canonical_basis(candidate)
        for candidate in candidates
        if not candidate.nutrients.is_empty()
    ]
    ranked = sorted(
        deduplicate(usable), key=lambda candidate: candidate.confidence, reverse=True
    )
    if not ranked:
        return None

    top = ranked[0]
    same_basis = [
        candidate for candidate in ranked[1:] if _same_basis(candidate, top)
    ]
    nutrients = top.nutrients
    provenance = [top.source_id]
    for candidate in same_basis:
        merged = nutrients.backfilled_from(candidate.nutrients)
        if merged is not nutrients and candidate.source_id not in provenance:
            provenance.append(candidate.source_id)
        nutrients = merged

    agreeing = _agreeing_sources(top.source_id, nutrients.calories, same_basis)
    for source_id in agreeing:
        if source_id not in provenance:
            provenance.append(source_id)
    confidence = min(MAX_CONFIDENCE, top.confidence + AGREEMENT_BOOST * len(agreeing))

    _logger.debug(
        "Reconciled %s from %s candidates (sources=%s, confidence=%.2f)",
        top.name,
        len(candidates),
        provenance,
        confidence,
    )
    return CanonicalNutrientProfile(
        name=top.name,
        nutrients=nutrients,
        confidence=round(confidence, 4),
        provenance=tuple(provenance),
        basis=top.basis,
        barcode=top.barcode,
        brand=top.brand,
    )


def deduplicate(candidates: list[FoodCandidate]) -> list[FoodCandidate]:
    """Keep the most confident candidate per (normalized name, source)."""
    best: dict[tuple[str, str], FoodCandidate] = {}
    for candidate in candidates:
        key = (normalize_name(candidate.name), candidate.source_id)
        current = best.get(key)
        if current is None or candidate.confidence > current.confidence:
            best[key] = candidate
    return list(best.values())


def calories_agree(reference: float, other: float) -> bool:
    """Return True when ``other`` is within tolerance of ``reference``."""
    if reference == 0:
        return other == 0
    return abs(other - reference) <= AGREEMENT_TOLERANCE * reference


def _agreeing_sources(
    top_source: str, calories: float | None, candidates: list[FoodCandidate]
) -> list[str]:
    if calories is None:
        return []
    agreeing: list[str] = []
    for candidate in candidates:
        other = candidate.nutrients.calories
        if (
            candidate.source_id != top_source
            and candidate.source_id not in agreeing
            and other is not None
            and calories_agree(calories, other)
        ):
            agreeing.append(candidate.source_id)
    return agreeing


def _to_canonical_basis(candidate: FoodCandidate) -> FoodCandidate:
    """Re-express a mass-convertible candidate per 100 g."""
    basis = candidate.basis
    if to_grams(basis.quantity, basis.unit) is None or candidate.basis == PER_100_G:
        return candidate
    factor = scale_ratio(
        PER_100_G.quantity, PER_100_G.unit, basis.quantity, basis.unit
    )
    return replace(
        candidate, basis=PER_100_G, nutrients=candidate.nutrients.scaled(factor)
    )


def _same_basis(candidate: FoodCandidate, reference: FoodCandidate) -> bool:
    return (
        candidate.basis.quantity == reference.basis.quantity
        and normalize_unit(candidate.basis.unit) == normalize_unit(reference.basis.unit)
    )
