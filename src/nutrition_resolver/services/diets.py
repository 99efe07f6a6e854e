"""Diet compatibility rules over a set of resolved foods."""

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from nutrition_resolver.domain.nutrition import NutrientProfile
from nutrition_resolver.domain.resolution import normalize_name
from nutrition_resolver.domain.scoring import DietCompatibility, DietVerdict
from nutrition_resolver.services.scoring import energy_kcal, macro_percentages

COMPATIBLE = 100
AMBIGUOUS = 50
VIOLATION = 0

KETO_CARB_CEILING_PCT = 10.0
KETO_CARB_LIMIT_PCT = 20.0
MEDITERRANEAN_SAT_FAT_CEILING_PCT = 10.0
MEDITERRANEAN_PROCESSED_MEAT_DEDUCTION = 40
MEDITERRANEAN_SAT_FAT_DEDUCTION = 30
KCAL_PER_G_FAT = 9.0

# Words that turn a dairy or meat term into a plant-based product.
_PLANT_QUALIFIERS = (
    "peanut",
    "almond",
    "cashew",
    "soy",
    "oat",
    "rice",
    "coconut",
    "vegan",
    "plant",
    "cocoa",
    "apple",
    "nut",
    "veggie",
    "bean",
    "tofu",
)
# Products commonly sold in a plant-based version.
_PLANT_SUBSTITUTES = (
    "milk",
    "butter",
    "cream",
    "cheese",
    "yogurt",
    "yoghurt",
    "burger",
    "sausage",
    "meat",
    "bacon",
    "nugget",
)
_PLANT_BASED = re.compile(
    r"\b(?:" + "|".join(_PLANT_QUALIFIERS) + r")\w*(?:\s+based)?"
    r"\s+(?:" + "|".join(_PLANT_SUBSTITUTES) + ")"
)

# Terms match as substrings of the normalized name, so stems cover plurals
# and compounds ("sausages", "cheeseburger").
INGREDIENT_TAXONOMY: dict[str, tuple[str, ...]] = {
    "meat": (
        "beef", "pork", "lamb", "chicken", "turkey", "duck", "goose", "veal",
        "venison", "bison", "bacon", "ham", "sausage", "salami", "pepperoni",
        "prosciutto", "steak", "meat", "burger", "hot dog", "gelatin",
    ),
    "processed_meat": (
        "bacon", "ham", "sausage", "salami", "pepperoni", "prosciutto",
        "hot dog", "hotdog", "jerky", "bologna", "chorizo",
    ),
    "seafood": (
        "fish", "salmon", "tuna", "cod", "tilapia", "shrimp", "prawn", "lobster",
        "crab", "scallop", "mussel", "clam", "oyster", "sardine", "mackerel",
        "anchov", "halibut", "bass", "trout", "squid", "calamari", "octopus",
    ),
    "dairy": (
        "milk", "cheese", "butter", "cream", "yogurt", "yoghurt", "whey",
        "casein", "lactose", "ghee", "mozzarella", "cheddar", "parmesan", "feta",
        "ricotta", "paneer", "kefir",
    ),
    "eggs": ("egg", "mayonnaise", "omelet", "meringue"),
    "honey": ("honey",),
    "grains": (
        "wheat", "rice", "oat", "barley", "quinoa", "bread", "pasta", "spaghetti",
        "flour", "cereal", "cracker", "bagel", "muffin", "pancake", "waffle",
        "noodle", "couscous", "bulgur", "farro", "millet", "tortilla", "pizza",
    ),
    "starches": (
        "potato", "corn", "bean", "lentil", "chickpea", "split pea", "fries",
    ),
    "high_sugar_fruits": (
        "banana", "grapes", "mango", "pineapple", "dates", "figs", "raisin",
        "dried fruit",
    ),
    "refined_sugar": ("sugar", "candy", "soda", "syrup", "chocolate", "cookie"),
    "nuts": (
        "almond", "walnut", "pecan", "cashew", "pistachio", "hazelnut",
        "brazil nut", "macadamia", "pine nut", "peanut", "nut flour", "nut butter",
    ),
    "gluten": (
        "wheat", "barley", "rye", "spelt", "kamut", "triticale", "malt", "bread",
        "pasta", "spaghetti", "flour", "soy sauce", "beer", "cereal", "cracker",
        "bagel", "muffin", "couscous", "bulgur", "seitan", "pizza", "noodle",
    ),
}

# Terms that only sometimes fall into a category (egg pasta, milk bread, ...).
AMBIGUOUS_TAXONOMY: dict[str, tuple[str, ...]] = {
    "eggs": ("pasta", "noodle", "cake", "brioche", "pancake", "waffle"),
    "dairy": ("bread", "chocolate", "cake", "pancake", "waffle", "sauce"),
    "gluten": ("oat", "granola", "sauce", "gravy"),
    "meat": ("broth", "stock", "gravy"),
    "seafood": ("caesar", "worcestershire", "fish sauce"),
}

# Phrases removed before matching because they contain a term by accident.
TERM_EXCLUSIONS: dict[str, tuple[str, ...]] = {
    "meat": ("graham", "champagne", "chamomile", "gooseberr", "beefsteak tomato"),
    "processed_meat": ("graham", "champagne", "chamomile", "hamburger"),
    "seafood": ("crab apple", "oyster mushroom"),
    "dairy": ("butternut", "cream of tartar", "buttercup squash"),
    "eggs": ("eggplant", "veggie"),
    "honey": ("honeydew",),
    "grains": ("goat", "boat", "float", "licorice"),
    "starches": (
        "peppercorn", "acorn", "green bean", "coffee bean", "cocoa bean",
        "vanilla bean",
    ),
    "nuts": ("coconut",),
    "refined_sugar": ("sugar snap", "baking soda"),
    "gluten": (
        "buckwheat", "rice flour", "almond flour", "coconut flour", "rice noodle",
        "rice pasta", "root beer", "ginger beer", "goat", "boat", "float",
    ),
}

# A name carrying one of these phrases is free of the category altogether.
FREE_FROM_MARKERS: dict[str, tuple[str, ...]] = {
    "meat": ("meatless", "meat free"),
    "processed_meat": ("meatless", "meat free"),
    "dairy": ("dairy free", "non dairy"),
    "eggs": ("egg free", "eggless"),
    "gluten": ("gluten free",),
    "refined_sugar": ("sugar free",),
}


@dataclass(frozen=True)
class DietRule:
    """Forbidden ingredient categories plus an optional nutrient check."""

    forbidden: tuple[str, ...]
    description: str


DIET_RULES: dict[str, DietRule] = {
    "vegan": DietRule(
        ("meat", "seafood", "dairy", "eggs", "honey"), "animal products"
    ),
    "vegetarian": DietRule(("meat", "seafood"), "meat or fish"),
    "pescatarian": DietRule(("meat",), "meat"),
    "keto": DietRule(
        ("grains", "starches", "high_sugar_fruits", "refined_sugar"),
        "high-carb foods",
    ),
    "paleo": DietRule(
        ("grains", "dairy", "starches", "refined_sugar"),
        "grains, dairy or legumes",
    ),
    "gluten-free": DietRule(("gluten",), "gluten"),
    "dairy-free": DietRule(("dairy",), "dairy"),
    "nut-free": DietRule(("nuts",), "nuts"),
    "mediterranean": DietRule(("processed_meat",), "processed meat"),
}


@dataclass(frozen=True)
class DietFood:
    """Ingredient name paired with its nutrients, for diet checks."""

    name: str
    nutrients: NutrientProfile = NutrientProfile()


def assess_diets(
    foods: Sequence[DietFood], diets: Iterable[str] | None = None
) -> DietCompatibility:
    """Return a verdict for every requested diet (all known diets by default)."""
    requested = [diet for diet in (diets or ()) if diet.strip()]
    names = requested or list(DIET_RULES)
    totals = NutrientProfile()
    for food in foods:
        totals = totals.plus(food.nutrients)
    verdicts: dict[str, DietVerdict] = {}
    for diet in names:
        key = _normalize_diet(diet)
        rule = DIET_RULES.get(key)
        if rule is None:
            verdicts[diet] = DietVerdict(
                AMBIGUOUS, f"No rules for diet '{diet}'; compatibility unknown"
            )
        elif key == "keto":
            verdicts[diet] = _keto_verdict(foods, totals, rule)
        elif key == "mediterranean":
            verdicts[diet] = _mediterranean_verdict(foods, totals, rule)
        else:
            verdicts[diet] = _lexicon_verdict(foods, rule)
    return DietCompatibility(verdicts)


def find_categories(name: str, taxonomy: dict[str, tuple[str, ...]]) -> set[str]:
    """Return taxonomy categories with a term inside the normalized name."""
    normalized = normalize_name(name)
    found: set[str] = set()
    for category, terms in taxonomy.items():
        if any(marker in normalized for marker in FREE_FROM_MARKERS.get(category, ())):
            continue
        text = _without_exclusions(normalized, category)
        if any(term in text for term in terms):
            found.add(category)
    return found


def _lexicon_verdict(foods: Sequence[DietFood], rule: DietRule) -> DietVerdict:
    violating = _matching(foods, rule.forbidden, INGREDIENT_TAXONOMY)
    if violating:
        return DietVerdict(VIOLATION, f"Contains {', '.join(violating)}")
    uncertain = _matching(foods, rule.forbidden, AMBIGUOUS_TAXONOMY)
    if uncertain:
        return DietVerdict(
            AMBIGUOUS,
            f"May contain {rule.description}: {', '.join(uncertain)}",
        )
    return DietVerdict(COMPATIBLE, "All ingredients are compatible with this diet")


def _keto_verdict(
    foods: Sequence[DietFood], totals: NutrientProfile, rule: DietRule
) -> DietVerdict:
    carbs = macro_percentages(totals).get("carbs")
    if carbs is None:
        lexicon = _lexicon_verdict(foods, rule)
        if lexicon.percentage == VIOLATION:
            return lexicon
        return DietVerdict(AMBIGUOUS, "Carbohydrate data unavailable")
    if carbs <= KETO_CARB_CEILING_PCT:
        return DietVerdict(COMPATIBLE, f"Carbs are {carbs:.0f}% of calories")
    ceiling = KETO_CARB_CEILING_PCT
    if carbs >= KETO_CARB_LIMIT_PCT:
        return DietVerdict(
            VIOLATION, f"Carbs are {carbs:.0f}% of calories (limit {ceiling:.0f}%)"
        )
    fraction = (KETO_CARB_LIMIT_PCT - carbs) / (KETO_CARB_LIMIT_PCT - ceiling)
    return DietVerdict(
        int(round(COMPATIBLE * fraction)),
        f"Carbs are {carbs:.0f}% of calories, above the {ceiling:.0f}% target",
    )


def _mediterranean_verdict(
    foods: Sequence[DietFood], totals: NutrientProfile, rule: DietRule
) -> DietVerdict:
    percentage = COMPATIBLE
    reasons: list[str] = []
    processed = _matching(foods, rule.forbidden, INGREDIENT_TAXONOMY)
    if processed:
        percentage -= MEDITERRANEAN_PROCESSED_MEAT_DEDUCTION * len(processed)
        reasons.append(f"Contains processed meat: {', '.join(processed)}")
    energy = energy_kcal(totals)
    if totals.saturated_fat is not None and energy > 0:
        sat_share = totals.saturated_fat * KCAL_PER_G_FAT / energy * 100.0
        if sat_share > MEDITERRANEAN_SAT_FAT_CEILING_PCT:
            percentage -= MEDITERRANEAN_SAT_FAT_DEDUCTION
            reasons.append(f"Saturated fat is {sat_share:.0f}% of calories")
    if not reasons:
        return DietVerdict(COMPATIBLE, "Fits a Mediterranean eating pattern")
    return DietVerdict(max(VIOLATION, percentage), "; ".join(reasons))


def _matching(
    foods: Sequence[DietFood],
    categories: tuple[str, ...],
    taxonomy: dict[str, tuple[str, ...]],
) -> list[str]:
    matches: list[str] = []
    for food in foods:
        if find_categories(food.name, taxonomy) & set(categories):
            if food.name not in matches:
                matches.append(food.name)
    return matches


def _without_exclusions(normalized: str, category: str) -> str:
    text = normalized
    for phrase in TERM_EXCLUSIONS.get(category, ()):
        text = text.replace(phrase, " ")
    if category in {"dairy", "meat", "processed_meat"}:
        text = _PLANT_BASED.sub(" ", text)
    return text


def _normalize_diet(diet: str) -> str:
    return re.sub(r"[\s_]+", "-", diet.strip().lower())
