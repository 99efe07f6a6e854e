"""Allergen detection over ingredient names."""

from collections.abc import Iterable
from dataclasses import dataclass

from nutrition_resolver.domain.resolution import normalize_name
from nutrition_resolver.domain.scoring import AllergenAssessment, AllergenSeverity


@dataclass(frozen=True)
class AllergenRule:
    """Substring terms for one allergen, plus phrases that cancel a match."""

    terms: tuple[str, ...]
    severity: AllergenSeverity
    exclusions: tuple[str, ...] = ()


ALLERGEN_RULES: dict[str, AllergenRule] = {
    "peanuts": AllergenRule(
        ("peanut", "groundnut", "arachis"), AllergenSeverity.SEVERE
    ),
    "nuts": AllergenRule(
        (
            "almond", "walnut", "pecan", "cashew", "pistachio", "hazelnut",
            "macadamia", "brazil nut", "pine nut", "chestnut", "praline",
            "marzipan", "nuts",
        ),
        AllergenSeverity.SEVERE,
        ("peanuts", "donuts", "doughnuts", "coconuts", "nutmeg", "butternut"),
    ),
    "dairy": AllergenRule(
        (
            "milk", "cheese", "butter", "cream", "yogurt", "yoghurt", "whey",
            "casein", "lactose", "ghee",
        ),
        AllergenSeverity.MILD,
        (
            "peanut butter", "almond butter", "cashew butter", "nut butter",
            "apple butter", "cocoa butter", "shea butter", "coconut milk",
            "coconut cream", "almond milk", "oat milk", "soy milk", "rice milk",
            "cream of tartar", "butternut",
        ),
    ),
    "eggs": AllergenRule(
        ("egg", "mayonnaise", "meringue", "albumen"),
        AllergenSeverity.MODERATE,
        ("eggplant", "egg free", "veggie"),
    ),
    "soy": AllergenRule(
        ("soy", "soya", "tofu", "edamame", "tempeh", "miso"),
        AllergenSeverity.MODERATE,
    ),
    "wheat": AllergenRule(
        (
            "wheat", "bread", "pasta", "flour", "couscous", "semolina", "bulgur",
            "seitan", "spelt", "barley", "rye", "cracker", "noodle",
        ),
        AllergenSeverity.MODERATE,
        (
            "buckwheat", "rice flour", "almond flour", "coconut flour",
            "rice noodle", "rice pasta",
        ),
    ),
    "fish": AllergenRule(
        (
            "fish", "salmon", "tuna", "cod", "tilapia", "trout", "sardine",
            "anchov", "mackerel", "halibut", "haddock", "bass",
        ),
        AllergenSeverity.MODERATE,
        ("shellfish", "crayfish"),
    ),
    "shellfish": AllergenRule(
        (
            "shellfish", "shrimp", "prawn", "crab", "lobster", "scallop",
            "mussel", "clam", "oyster", "crayfish",
        ),
        AllergenSeverity.SEVERE,
        ("crab apple", "oyster mushroom"),
    ),
    "sesame": AllergenRule(("sesame", "tahini", "halva"), AllergenSeverity.SEVERE),
}

_ALLERGEN_ALIASES = {
    "peanut": "peanuts",
    "nut": "nuts",
    "tree nut": "nuts",
    "tree nuts": "nuts",
    "milk": "dairy",
    "lactose": "dairy",
    "egg": "eggs",
    "gluten": "wheat",
    "soya": "soy",
    "crustacean": "shellfish",
    "crustaceans": "shellfish",
    "shellfishes": "shellfish",
}


def canonical_allergen(name: str) -> str | None:
    """Map a user-declared allergen onto a known allergen key."""
    normalized = normalize_name(name).removesuffix(" free").strip()
    key = _ALLERGEN_ALIASES.get(normalized, normalized)
    return key if key in ALLERGEN_RULES else None


def find_allergens(ingredient: str) -> list[str]:
    """Return every allergen whose terms appear in an ingredient name."""
    normalized = normalize_name(ingredient)
    found: list[str] = []
    for allergen, rule in ALLERGEN_RULES.items():
        text = normalized
        for phrase in rule.exclusions:
            text = text.replace(phrase, " ")
        if any(term in text for term in rule.terms):
            found.append(allergen)
    return found


def assess_allergens(
    ingredients: Iterable[str], declared: Iterable[str] = ()
) -> AllergenAssessment:
    """Check ingredients against the user's declared allergens.

    With declared allergens, only those are reported as detected and
    anything else found is listed in ``other_allergens``. Without any, every
    allergen found is reported.
    """
    sources: dict[str, list[str]] = {}
    for ingredient in ingredients:
        for allergen in find_allergens(ingredient):
            names = sources.setdefault(allergen, [])
            if ingredient not in names:
                names.append(ingredient)

    declared_names = [name for name in declared if name.strip()]
    warnings: list[str] = []
    watched: set[str] = set()
    for name in declared_names:
        key = canonical_allergen(name)
        if key is None:
            warnings.append(f"Unrecognised allergen '{name}' was not checked")
        else:
            watched.add(key)

    ordered = [allergen for allergen in ALLERGEN_RULES if allergen in sources]
    if declared_names:
        detected = [allergen for allergen in ordered if allergen in watched]
        others = [allergen for allergen in ordered if allergen not in watched]
    else:
        detected = ordered
        others = []

    for allergen in detected:
        warnings.append(f"Contains {allergen}: {', '.join(sources[allergen])}")
    severity = max(
        (ALLERGEN_RULES[allergen].severity for allergen in detected),
        key=lambda level: level.rank,
        default=None,
    )
    return AllergenAssessment(
        is_allergen_free=not detected,
        detected_allergens=tuple(detected),
        severity=severity,
        warnings=tuple(warnings),
        other_allergens=tuple(others),
    )
