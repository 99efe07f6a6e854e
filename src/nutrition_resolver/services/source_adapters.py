"""Concrete source adapters mapping provider payloads to candidates."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

from nutrition_resolver.adapters.edamam_client import EdamamClient
from nutrition_resolver.adapters.fdc_client import FdcClient
from nutrition_resolver.adapters.openfoodfacts_client import OpenFoodFactsClient
from nutrition_resolver.domain.nutrition import (
    NUTRIENT_FIELDS,
    PER_100_G,
    FoodCandidate,
    NutrientProfile,
)
from nutrition_resolver.domain.resolution import normalize_barcode
from nutrition_resolver.services.sources import call_with_retry

_logger = logging.getLogger(__name__)

CURATED_SOURCE_ID = "curated"
EDAMAM_SOURCE_ID = "edamam"
OPENFOODFACTS_SOURCE_ID = "openfoodfacts"
OPENFOODFACTS_SEARCH_SOURCE_ID = "openfoodfacts_search"
AI_ESTIMATE_SOURCE_ID = "ai_estimate"

RANK_CONFIDENCE_STEP = 0.05
MIN_RANKED_CONFIDENCE = 0.1

_FDC_NUTRIENT_IDS: dict[int, str] = {
    1008: "calories",
    1003: "protein",
    1005: "carbs",
    1004: "fat",
    1079: "fiber",
    2000: "sugar",
    1258: "saturated_fat",
    1093: "sodium",
    1089: "iron",
    1162: "vitamin_c",
    1087: "calcium",
    1090: "magnesium",
    1178: "vitamin_b12",
    1253: "cholesterol",
}
# Atwater energy values, used only when the plain energy entry is missing.
_FDC_ENERGY_FALLBACK_IDS = (2047, 2048)
_FDC_TEXT_DATA_TYPES = ["Foundation", "SR Legacy", "Survey (FNDDS)"]
_FDC_BARCODE_DATA_TYPES = ["Branded"]

# Open Food Facts reports *_100g values in grams; factors convert to our units.
_OFF_NUTRIMENTS: dict[str, tuple[str, float]] = {
    "proteins_100g": ("protein", 1.0),
    "carbohydrates_100g": ("carbs", 1.0),
    "fat_100g": ("fat", 1.0),
    "fiber_100g": ("fiber", 1.0),
    "sugars_100g": ("sugar", 1.0),
    "saturated-fat_100g": ("saturated_fat", 1.0),
    "sodium_100g": ("sodium", 1000.0),
    "iron_100g": ("iron", 1000.0),
    "vitamin-c_100g": ("vitamin_c", 1000.0),
    "calcium_100g": ("calcium", 1000.0),
    "magnesium_100g": ("magnesium", 1000.0),
    "vitamin-b12_100g": ("vitamin_b12", 1_000_000.0),
    "cholesterol_100g": ("cholesterol", 1000.0),
}
_KJ_PER_KCAL = 4.184
_SODIUM_MG_PER_G_SALT = 400.0

_EDAMAM_NUTRIENTS: dict[str, str] = {
    "ENERC_KCAL": "calories",
    "PROCNT": "protein",
    "CHOCDF": "carbs",
    "FAT": "fat",
    "FIBTG": "fiber",
    "SUGAR": "sugar",
    "FASAT": "saturated_fat",
    "NA": "sodium",
    "FE": "iron",
    "VITC": "vitamin_c",
    "CA": "calcium",
    "MG": "magnesium",
    "VITB12": "vitamin_b12",
    "CHOLE": "cholesterol",
}

_NULLABLE_NUMBER = {"anyOf": [{"type": "number", "minimum": 0}, {"type": "null"}]}

ESTIMATE_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "nutrients_per_100g": {
            "type": "object",
            "properties": {name: _NULLABLE_NUMBER for name in NUTRIENT_FIELDS},
            "required": list(NUTRIENT_FIELDS),
            "additionalProperties": False,
        },
    },
    "required": ["name", "nutrients_per_100g"],
    "additionalProperties": False,
}

ESTIMATE_PROMPT = (
    "Estimate typical nutrient values per 100 g for the food named below. "
    "Use kcal for calories, grams for macronutrients, fiber, sugar and "
    "saturated fat, milligrams for sodium, iron, vitamin C, calcium, magnesium "
    "and cholesterol, and micrograms for vitamin B12. Use null when unsure."
)


class EstimateClient(Protocol):
    """Interface for LLM nutrient estimation."""

    async def estimate(
        self, *, ingredient: str, schema: dict[str, object], prompt: str
    ) -> dict[str, object]:
        """Return structured nutrient estimate data."""


@dataclass
class FdcSource:
    """Curated, government-grade nutrient database (USDA FoodData Central)."""

    client: FdcClient
    base_confidence: float = 0.9
    page_size: int = 5
    retry_attempts: int = 1
    source_id: str = CURATED_SOURCE_ID
    supports_barcode: bool = True
    supports_text: bool = True
    is_fallback: bool = False

    async def search_by_text(self, query: str) -> list[FoodCandidate]:
        payload = await call_with_retry(
            lambda: self.client.search_foods(
                query, page_size=self.page_size, data_types=_FDC_TEXT_DATA_TYPES
            ),
            action=f"fdc:search:{query}",
            retry_attempts=self.retry_attempts,
        )
        candidates: list[FoodCandidate] = []
        for food in _as_dicts(payload.get("foods")):
            candidate = self._to_candidate(food, len(candidates))
            if candidate is not None:
                candidates.append(candidate)
        return candidates

    async def search_by_barcode(self, code: str) -> FoodCandidate | None:
        payload = await call_with_retry(
            lambda: self.client.search_foods(
                code, page_size=self.page_size, data_types=_FDC_BARCODE_DATA_TYPES
            ),
            action=f"fdc:barcode:{code}",
            retry_attempts=self.retry_attempts,
        )
        for food in _as_dicts(payload.get("foods")):
            if _same_barcode(str(food.get("gtinUpc") or ""), code):
                return self._to_candidate(food, 0, barcode=code)
        return None

    def _to_candidate(
        self, food: dict[str, object], rank: int, barcode: str | None = None
    ) -> FoodCandidate | None:
        description = str(food.get("description") or "").strip()
        if not description:
            return None
        nutrients = extract_fdc_nutrients(_as_dicts(food.get("foodNutrients")))
        if nutrients.is_empty():
            return None
        return FoodCandidate(
            name=description,
            source_id=self.source_id,
            basis=PER_100_G,
            nutrients=nutrients,
            confidence=ranked_confidence(self.base_confidence, rank),
            barcode=barcode,
            brand=_optional_str(food.get("brandName") or food.get("brandOwner")),
        )


@dataclass
class OpenFoodFactsBarcodeSource:
    """Barcode-keyed product database (Open Food Facts)."""

    client: OpenFoodFactsClient
    base_confidence: float = 0.8
    retry_attempts: int = 1
    source_id: str = OPENFOODFACTS_SOURCE_ID
    supports_barcode: bool = True
    supports_text: bool = False
    is_fallback: bool = False

    async def search_by_barcode(self, code: str) -> FoodCandidate | None:
        product = await call_with_retry(
            lambda: self.client.get_product(code),
            action=f"off:product:{code}",
            retry_attempts=self.retry_attempts,
        )
        if product is None:
            _logger.info("Open Food Facts has no product for barcode %s", code)
            return None
        return off_product_to_candidate(
            product,
            source_id=self.source_id,
            confidence=self.base_confidence,
            barcode=code,
        )

    async def search_by_text(self, query: str) -> list[FoodCandidate]:
        return []


@dataclass
class OpenFoodFactsSearchSource:
    """Crowd-sourced free-text product search (Open Food Facts)."""

    client: OpenFoodFactsClient
    base_confidence: float = 0.7
    page_size: int = 5
    retry_attempts: int = 1
    source_id: str = OPENFOODFACTS_SEARCH_SOURCE_ID
    supports_barcode: bool = False
    supports_text: bool = True
    is_fallback: bool = False

    async def search_by_barcode(self, code: str) -> FoodCandidate | None:
        return None

    async def search_by_text(self, query: str) -> list[FoodCandidate]:
        payload = await call_with_retry(
            lambda: self.client.search_products(query, page_size=self.page_size),
            action=f"off:search:{query}",
            retry_attempts=self.retry_attempts,
        )
        candidates: list[FoodCandidate] = []
        for product in _as_dicts(payload.get("products")):
            candidate = off_product_to_candidate(
                product,
                source_id=self.source_id,
                confidence=ranked_confidence(self.base_confidence, len(candidates)),
                barcode=_optional_str(product.get("code")),
            )
            if candidate is not None:
                candidates.append(candidate)
        return candidates


@dataclass
class EdamamSource:
    """Edamam food database text search."""

    client: EdamamClient
    base_confidence: float = 0.85
    max_results: int = 5
    retry_attempts: int = 1
    source_id: str = EDAMAM_SOURCE_ID
    supports_barcode: bool = False
    supports_text: bool = True
    is_fallback: bool = False

    async def search_by_barcode(self, code: str) -> FoodCandidate | None:
        return None

    async def search_by_text(self, query: str) -> list[FoodCandidate]:
        payload = await call_with_retry(
            lambda: self.client.parse_food(query),
            action=f"edamam:parse:{query}",
            retry_attempts=self.retry_attempts,
        )
        candidates: list[FoodCandidate] = []
        for hint in _as_dicts(payload.get("hints"))[: self.max_results]:
            food = hint.get("food")
            if not isinstance(food, dict):
                continue
            label = str(food.get("label") or "").strip()
            raw = food.get("nutrients")
            nutrients = NutrientProfile.from_mapping(
                {
                    field: raw.get(key)
                    for key, field in _EDAMAM_NUTRIENTS.items()
                }
                if isinstance(raw, dict)
                else {}
            )
            if not label or nutrients.is_empty():
                continue
            candidates.append(
                FoodCandidate(
                    name=label,
                    source_id=self.source_id,
                    basis=PER_100_G,
                    nutrients=nutrients,
                    confidence=ranked_confidence(
                        self.base_confidence, len(candidates)
                    ),
                    brand=_optional_str(food.get("brand")),
                )
            )
        return candidates


@dataclass
class AiEstimateSource:
    """Last-resort LLM nutrient estimate with a low fixed confidence."""

    client: EstimateClient
    confidence: float = 0.4
    source_id: str = AI_ESTIMATE_SOURCE_ID
    supports_barcode: bool = False
    supports_text: bool = True
    is_fallback: bool = True

    async def search_by_barcode(self, code: str) -> FoodCandidate | None:
        return None

    async def search_by_text(self, query: str) -> list[FoodCandidate]:
        raw = await self.client.estimate(
            ingredient=query, schema=ESTIMATE_SCHEMA, prompt=ESTIMATE_PROMPT
        )
        values = raw.get("nutrients_per_100g")
        nutrients = NutrientProfile.from_mapping(
            values if isinstance(values, dict) else {}
        )
        if nutrients.is_empty():
            return []
        name = str(raw.get("name") or query).strip() or query
        return [
            FoodCandidate(
                name=name,
                source_id=self.source_id,
                basis=PER_100_G,
                nutrients=nutrients,
                confidence=self.confidence,
            )
        ]


def ranked_confidence(base: float, rank: int) -> float:
    """Lower a provider's base confidence for results further down its list."""
    return round(max(MIN_RANKED_CONFIDENCE, base - rank * RANK_CONFIDENCE_STEP), 4)


def extract_fdc_nutrients(food_nutrients: list[dict[str, object]]) -> NutrientProfile:
    """Map FDC nutrient entries (search or detail format) to a profile."""
    values: dict[str, object] = {}
    fallback_energy: object | None = None
    for nutrient in food_nutrients:
        nutrient_info = nutrient.get("nutrient")
        if isinstance(nutrient_info, dict):
            nutrient_id = nutrient_info.get("id")
        else:
            nutrient_id = nutrient.get("nutrientId")
        amount = nutrient.get("amount", nutrient.get("value"))
        if amount is None:
            continue
        if nutrient_id in _FDC_ENERGY_FALLBACK_IDS and fallback_energy is None:
            fallback_energy = amount
        field = _FDC_NUTRIENT_IDS.get(nutrient_id)  # type: ignore[arg-type]
        if field is not None and field not in values:
            values[field] = amount
    if "calories" not in values and fallback_energy is not None:
        values["calories"] = fallback_energy
    return NutrientProfile.from_mapping(values)


def extract_off_nutrients(nutriments: Mapping[str, object]) -> NutrientProfile:
    """Map Open Food Facts nutriments to a profile with unit fallbacks."""
    values: dict[str, object] = {}
    calories = _as_float(nutriments.get("energy-kcal_100g"))
    if calories is None:
        kilojoules = _as_float(nutriments.get("energy_100g"))
        if kilojoules is not None:
            calories = kilojoules / _KJ_PER_KCAL
    if calories is not None:
        values["calories"] = calories
    for key, (field, factor) in _OFF_NUTRIMENTS.items():
        amount = _as_float(nutriments.get(key))
        if amount is not None:
            values[field] = amount * factor
    if "sodium" not in values:
        salt = _as_float(nutriments.get("salt_100g"))
        if salt is not None:
            values["sodium"] = salt * _SODIUM_MG_PER_G_SALT
    return NutrientProfile.from_mapping(values)


def off_product_to_candidate(
    product: dict[str, object],
    *,
    source_id: str,
    confidence: float,
    barcode: str | None,
) -> FoodCandidate | None:
    name = str(product.get("product_name") or product.get("generic_name") or "")
    nutriments = product.get("nutriments")
    if not isinstance(nutriments, dict):
        nutriments = {}
    nutrients = extract_off_nutrients(nutriments)
    if not name.strip() or nutrients.is_empty():
        return None
    brands = str(product.get("brands") or "")
    return FoodCandidate(
        name=name.strip(),
        source_id=source_id,
        basis=PER_100_G,
        nutrients=nutrients,
        confidence=confidence,
        barcode=barcode,
        brand=brands.split(",")[0].strip() or None,
    )


def _same_barcode(candidate: str, code: str) -> bool:
    left = normalize_barcode(candidate).lstrip("0")
    right = normalize_barcode(code).lstrip("0")
    return bool(left) and left == right


def _as_dicts(value: object) -> list[dict[str, object]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _as_float(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
