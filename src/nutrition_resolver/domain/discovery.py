"""Discovery task models."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from nutrition_resolver.domain.nutrition import CanonicalNutrientProfile


class DiscoveryStatus(StrEnum):
    """Lifecycle states of a discovery task."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    FAILED = "failed"


ACTIVE_STATUSES = frozenset({DiscoveryStatus.PENDING, DiscoveryStatus.IN_PROGRESS})


@dataclass(frozen=True)
class DiscoveryTask:
    """Background resolution job for an unknown ingredient."""

    ingredient_key: str
    requested_by: str
    status: DiscoveryStatus = DiscoveryStatus.PENDING
    attempts: int = 0
    last_attempt_at: datetime | None = None
    next_attempt_at: datetime | None = None
    last_error: str | None = None
    result: CanonicalNutrientProfile | None = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES
