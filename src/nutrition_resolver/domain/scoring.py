"""Derived score models."""

from dataclasses import dataclass, field
from enum import StrEnum


@dataclass(frozen=True)
class NutritionScore:
    """Nutrition quality score with its component breakdown."""

    score: int
    grade: str
    macro_score: float
    fiber_score: float
    micro_score: float
    moderation_score: float
    processing_penalty: float


@dataclass(frozen=True)
class DietVerdict:
    """Compatibility of a food set with one diet."""

    percentage: int
    reason: str


@dataclass(frozen=True)
class DietCompatibility:
    """Per-diet compatibility verdicts keyed by diet name."""

    verdicts: dict[str, DietVerdict] = field(default_factory=dict)

    def __getitem__(self, diet: str) -> DietVerdict:
        return self.verdicts[diet]

    def __contains__(self, diet: object) -> bool:
        return diet in self.verdicts


class AllergenSeverity(StrEnum):
    """Allergen severity levels, ordered from least to most severe."""

    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "high"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    AllergenSeverity.MILD: 1,
    AllergenSeverity.MODERATE: 2,
    AllergenSeverity.SEVERE: 3,
}


@dataclass(frozen=True)
class AllergenAssessment:
    """Allergen check of a food set against declared allergens."""

    is_allergen_free: bool
    detected_allergens: tuple[str, ...]
    severity: AllergenSeverity | None
    warnings: tuple[str, ...]
    other_allergens: tuple[str, ...] = ()
