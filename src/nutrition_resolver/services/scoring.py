"""Deterministic nutrition quality scoring.

Every function here is pure and total: a missing nutrient earns no points for
its component and never raises.
"""

from nutrition_resolver.domain.nutrition import NutrientProfile
from nutrition_resolver.domain.scoring import NutritionScore

GRADE_THRESHOLDS: tuple[tuple[int, str], ...] = (
    (90, "A"),
    (80, "B"),
    (70, "C"),
    (60, "D"),
)
LOWEST_GRADE = "E"

KCAL_PER_G_PROTEIN = 4.0
KCAL_PER_G_CARBS = 4.0
KCAL_PER_G_FAT = 9.0

PROTEIN_POINTS = 17.0
CARB_POINTS = 17.0
FAT_POINTS = 16.0
PROTEIN_MIN_PCT = 15.0
CARB_BAND_PCT = (45.0, 65.0)
CARB_FALLOFF_PCT = 25.0
FAT_BAND_PCT = (20.0, 35.0)
FAT_FALLOFF_PCT = 20.0

FIBER_POINTS = 20.0
FIBER_TARGET_G_PER_100_KCAL = 2.0

MICRO_POINTS_EACH = 4.0
# Daily values (mg, except vitamin B12 in mcg).
DAILY_VALUES: dict[str, float] = {
    "iron": 18.0,
    "vitamin_c": 90.0,
    "calcium": 1300.0,
    "magnesium": 420.0,
    "vitamin_b12": 2.4,
}
# 5% DV per 100 kcal covers the full DV over a 2000 kcal day.
MICRO_TARGET_DV_PER_100_KCAL = 0.05
MICRO_TARGET_DV_WITHOUT_ENERGY = 0.10

MODERATION_POINTS_EACH = 5.0
SUGAR_SHARE_BAND = (0.10, 0.25)
SODIUM_MG_PER_100_KCAL_BAND = (100.0, 300.0)

MAX_PROCESSING_PENALTY = 20.0
LOW_DENSITY_THRESHOLD = 0.3


def grade_for(score: int) -> str:
    """Map a 0-100 score to its letter grade."""
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return LOWEST_GRADE


def energy_kcal(nutrients: NutrientProfile) -> float:
    """Return calories, or the Atwater estimate from macros when absent."""
    if nutrients.calories is not None and nutrients.calories > 0:
        return nutrients.calories
    return (
        (nutrients.protein or 0.0) * KCAL_PER_G_PROTEIN
        + (nutrients.carbs or 0.0) * KCAL_PER_G_CARBS
        + (nutrients.fat or 0.0) * KCAL_PER_G_FAT
    )


def macro_percentages(nutrients: NutrientProfile) -> dict[str, float]:
    """Share of energy (percent) from each macro that is present."""
    energy = energy_kcal(nutrients)
    if energy <= 0:
        return {}
    shares: dict[str, float] = {}
    for name, kcal_per_g in (
        ("protein", KCAL_PER_G_PROTEIN),
        ("carbs", KCAL_PER_G_CARBS),
        ("fat", KCAL_PER_G_FAT),
    ):
        grams = getattr(nutrients, name)
        if grams is not None:
            shares[name] = grams * kcal_per_g / energy * 100.0
    return shares


def score_nutrition(nutrients: NutrientProfile) -> NutritionScore:
    """Compute the 0-100 nutrition score and its breakdown."""
    energy = energy_kcal(nutrients)
    shares = macro_percentages(nutrients)
    macro = _macro_points(shares)
    fiber = _fiber_points(nutrients, energy)
    micro = _micro_points(nutrients, energy)
    moderation = _moderation_points(nutrients, energy)
    penalty = _processing_penalty(nutrients, energy, shares, fiber, micro)
    total = macro + fiber + micro + moderation + penalty
    score = int(round(min(100.0, max(0.0, total))))
    return NutritionScore(
        score=score,
        grade=grade_for(score),
        macro_score=round(macro, 2),
        fiber_score=round(fiber, 2),
        micro_score=round(micro, 2),
        moderation_score=round(moderation, 2),
        processing_penalty=round(penalty, 2),
    )


def health_suggestions(score: NutritionScore, nutrients: NutrientProfile) -> list[str]:
    """Return short, human-readable tips derived from a score breakdown."""
    suggestions: list[str] = []
    shares = macro_percentages(nutrients)
    if score.fiber_score < FIBER_POINTS / 4:
        suggestions.append(
            "Add more fiber with vegetables, fruits, legumes or whole grains."
        )
    if shares.get("protein", 0.0) < PROTEIN_MIN_PCT:
        suggestions.append(
            "Consider adding a lean protein source like chicken, fish or legumes."
        )
    if score.moderation_score < MODERATION_POINTS_EACH:
        suggestions.append(
            "This is high in sugar or sodium. Fresh ingredients and herbs help."
        )
    if score.processing_penalty <= -MAX_PROCESSING_PENALTY / 2:
        suggestions.append(
            "Mostly empty calories. Swap in less processed, nutrient-dense foods."
        )
    if score.score >= GRADE_THRESHOLDS[1][0]:
        suggestions.append("Excellent nutritional balance.")
    return suggestions


def band_points(
    value: float, low: float, high: float, max_points: float, falloff: float
) -> float:
    """Full points inside [low, high], decaying linearly to 0 over ``falloff``."""
    if low <= value <= high:
        return max_points
    distance = low - value if value < low else value - high
    return max(0.0, max_points * (1.0 - distance / falloff))


def _macro_points(shares: dict[str, float]) -> float:
    points = 0.0
    protein = shares.get("protein")
    if protein is not None:
        points += PROTEIN_POINTS * min(1.0, protein / PROTEIN_MIN_PCT)
    carbs = shares.get("carbs")
    if carbs is not None:
        points += band_points(carbs, *CARB_BAND_PCT, CARB_POINTS, CARB_FALLOFF_PCT)
    fat = shares.get("fat")
    if fat is not None:
        points += band_points(fat, *FAT_BAND_PCT, FAT_POINTS, FAT_FALLOFF_PCT)
    return points


def _fiber_points(nutrients: NutrientProfile, energy: float) -> float:
    if nutrients.fiber is None or energy <= 0:
        return 0.0
    per_100_kcal = nutrients.fiber / energy * 100.0
    return FIBER_POINTS * min(1.0, per_100_kcal / FIBER_TARGET_G_PER_100_KCAL)


def _micro_points(nutrients: NutrientProfile, energy: float) -> float:
    points = 0.0
    for name, daily_value in DAILY_VALUES.items():
        amount = getattr(nutrients, name)
        if amount is None:
            continue
        fraction = amount / daily_value
        if energy > 0:
            adequacy = fraction / (energy / 100.0) / MICRO_TARGET_DV_PER_100_KCAL
        else:
            adequacy = fraction / MICRO_TARGET_DV_WITHOUT_ENERGY
        points += MICRO_POINTS_EACH * min(1.0, adequacy)
    return points


def _moderation_points(nutrients: NutrientProfile, energy: float) -> float:
    if energy <= 0:
        return 0.0
    points = 0.0
    if nutrients.sugar is not None:
        sugar_share = nutrients.sugar * KCAL_PER_G_CARBS / energy
        points += _lower_is_better(sugar_share, *SUGAR_SHARE_BAND)
    if nutrients.sodium is not None:
        sodium_density = nutrients.sodium / energy * 100.0
        points += _lower_is_better(sodium_density, *SODIUM_MG_PER_100_KCAL_BAND)
    return points


def _lower_is_better(value: float, good: float, bad: float) -> float:
    if value <= good:
        return MODERATION_POINTS_EACH
    if value >= bad:
        return 0.0
    return MODERATION_POINTS_EACH * (bad - value) / (bad - good)


def _processing_penalty(
    nutrients: NutrientProfile,
    energy: float,
    shares: dict[str, float],
    fiber: float,
    micro: float,
) -> float:
    """Penalize energy that comes with very little nutrient density."""
    if energy <= 0:
        return 0.0
    protein_density = min(1.0, shares.get("protein", 0.0) / PROTEIN_MIN_PCT)
    density = (
        fiber / FIBER_POINTS
        + micro / (MICRO_POINTS_EACH * len(DAILY_VALUES))
        + protein_density
    ) / 3.0
    if density >= LOW_DENSITY_THRESHOLD:
        return 0.0
    empty_kcal = (nutrients.sugar or 0.0) * KCAL_PER_G_CARBS + (
        nutrients.saturated_fat or 0.0
    ) * KCAL_PER_G_FAT
    empty_share = min(1.0, empty_kcal / energy)
    severity = (LOW_DENSITY_THRESHOLD - density) / LOW_DENSITY_THRESHOLD
    penalty = MAX_PROCESSING_PENALTY * severity * (0.5 + empty_share)
    return -min(MAX_PROCESSING_PENALTY, penalty)
