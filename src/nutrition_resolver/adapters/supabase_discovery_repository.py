"""Supabase-backed discovery task table."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from nutrition_resolver.domain.discovery import DiscoveryStatus, DiscoveryTask
from nutrition_resolver.domain.nutrition import (
    Basis,
    CanonicalNutrientProfile,
    NutrientProfile,
)
from nutrition_resolver.services.discovery import DiscoveryTaskRepository

_TABLE = "discovery_tasks"
_COLUMNS = (
    "ingredient_key, requested_by, status, attempts, last_attempt_at, "
    "next_attempt_at, last_error, result_json"
)


@dataclass
class SupabaseDiscoveryTaskRepository(DiscoveryTaskRepository):
    """Supabase implementation for discovery tasks.

    Expects a unique constraint on ``ingredient_key``.
    """

    client: Client

    def get(self, ingredient_key: str) -> DiscoveryTask | None:
        response = (
            self.client.table(_TABLE)
            .select(_COLUMNS)
            .eq("ingredient_key", ingredient_key)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _row_to_task(response.data[0])

    def add(self, task: DiscoveryTask) -> DiscoveryTask:
        """Insert a task; an existing row for the key is left untouched."""
        self.client.table(_TABLE).upsert(
            _task_to_row(task),
            on_conflict="ingredient_key",
            ignore_duplicates=True,
        ).execute()
        return self.get(task.ingredient_key) or task

    def list_pending(self, limit: int, now: datetime) -> list[DiscoveryTask]:
        response = (
            self.client.table(_TABLE)
            .select(_COLUMNS)
            .eq("status", DiscoveryStatus.PENDING.value)
            .or_(f"next_attempt_at.is.null,next_attempt_at.lte.{now.isoformat()}")
            .order("created_at")
            .limit(limit)
            .execute()
        )
        return [_row_to_task(row) for row in response.data or []]

    def list_stale(self, limit: int, stale_before: datetime) -> list[DiscoveryTask]:
        response = (
            self.client.table(_TABLE)
            .select(_COLUMNS)
            .eq("status", DiscoveryStatus.IN_PROGRESS.value)
            .lt("last_attempt_at", stale_before.isoformat())
            .order("last_attempt_at")
            .limit(limit)
            .execute()
        )
        return [_row_to_task(row) for row in response.data or []]

    def list_by_status(
        self, status: DiscoveryStatus | None, limit: int
    ) -> list[DiscoveryTask]:
        query = self.client.table(_TABLE).select(_COLUMNS)
        if status is not None:
            query = query.eq("status", status.value)
        response = query.order("created_at", desc=True).limit(limit).execute()
        return [_row_to_task(row) for row in response.data or []]

    def compare_and_set(
        self,
        task: DiscoveryTask,
        expected_status: DiscoveryStatus,
        expected_attempts: int | None = None,
    ) -> bool:
        """Conditional update; the status filter makes it atomic per row."""
        row = _task_to_row(task)
        row["updated_at"] = datetime.now(tz=UTC).isoformat()
        query = (
            self.client.table(_TABLE)
            .update(row)
            .eq("ingredient_key", task.ingredient_key)
            .eq("status", expected_status.value)
        )
        if expected_attempts is not None:
            query = query.eq("attempts", expected_attempts)
        response = query.execute()
        return bool(response.data)


def _task_to_row(task: DiscoveryTask) -> dict[str, object]:
    return {
        "ingredient_key": task.ingredient_key,
        "requested_by": task.requested_by,
        "status": task.status.value,
        "attempts": task.attempts,
        "last_attempt_at": _isoformat(task.last_attempt_at),
        "next_attempt_at": _isoformat(task.next_attempt_at),
        "last_error": task.last_error,
        "result_json": _profile_to_json(task.result),
    }


def _row_to_task(row: dict[str, object]) -> DiscoveryTask:
    result = row.get("result_json")
    return DiscoveryTask(
        ingredient_key=str(row["ingredient_key"]),
        requested_by=str(row.get("requested_by") or ""),
        status=DiscoveryStatus(str(row["status"])),
        attempts=int(row.get("attempts") or 0),
        last_attempt_at=_parse_datetime(row.get("last_attempt_at")),
        next_attempt_at=_parse_datetime(row.get("next_attempt_at")),
        last_error=str(row["last_error"]) if row.get("last_error") else None,
        result=_profile_from_json(result) if isinstance(result, dict) else None,
    )


def _profile_to_json(
    profile: CanonicalNutrientProfile | None,
) -> dict[str, object] | None:
    if profile is None:
        return None
    return {
        "name": profile.name,
        "nutrients": profile.nutrients.present(),
        "confidence": profile.confidence,
        "provenance": list(profile.provenance),
        "basis": {"quantity": profile.basis.quantity, "unit": profile.basis.unit},
        "barcode": profile.barcode,
        "brand": profile.brand,
    }


def _profile_from_json(data: dict[str, object]) -> CanonicalNutrientProfile:
    nutrients = data.get("nutrients")
    basis = data.get("basis")
    if not isinstance(basis, dict):
        basis = {"quantity": 100, "unit": "g"}
    provenance = data.get("provenance")
    sources = provenance if isinstance(provenance, list) else []
    return CanonicalNutrientProfile(
        name=str(data.get("name") or ""),
        nutrients=NutrientProfile.from_mapping(
            nutrients if isinstance(nutrients, dict) else {}
        ),
        confidence=float(data.get("confidence") or 0.0),
        provenance=tuple(str(source) for source in sources),
        basis=Basis(quantity=float(basis["quantity"]), unit=str(basis["unit"])),
        barcode=str(data["barcode"]) if data.get("barcode") else None,
        brand=str(data["brand"]) if data.get("brand") else None,
    )


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_datetime(value: object) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    return datetime.fromisoformat(value)
