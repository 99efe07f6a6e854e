"""Tests for the Supabase discovery task repository."""

from dataclasses import dataclass, field
from datetime import UTC, datetime

from nutrition_resolver.adapters.supabase_discovery_repository import (
    SupabaseDiscoveryTaskRepository,
)
from nutrition_resolver.domain.discovery import DiscoveryStatus, DiscoveryTask
from nutrition_resolver.domain.nutrition import (
    PER_100_G,
    CanonicalNutrientProfile,
    NutrientProfile,
)


@dataclass
class FakeResponse:
    data: list[dict[str, object]] | None


@dataclass
class FakeTable:
    name: str
    response_queue: dict[str, list[list[dict[str, object]]]] = field(
        default_factory=lambda: {"select": [], "upsert": [], "update": []}
    )
    last_payload: object | None = None
    last_filters: list[tuple[str, object]] = field(default_factory=list)
    upsert_options: dict[str, object] = field(default_factory=dict)
    orders: list[tuple[str, bool]] = field(default_factory=list)

    def queue(self, action: str, data: list[dict[str, object]]) -> None:
        self.response_queue[action].append(data)

    def select(self, *_args) -> "FakeTable":
        self._action = "select"
        return self

    def upsert(self, payload, **kwargs) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "upsert"
        self.last_payload = payload
        self.upsert_options = kwargs
        return self

    def update(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "update"
        self.last_payload = payload
        return self

    def eq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((column, value))
        return self

    def or_(self, filters: str) -> "FakeTable":
        self.last_filters.append(("or", filters))
        return self

    def lt(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((f"{column}<", value))
        return self

    def order(self, column: str, desc: bool = False) -> "FakeTable":
        self.orders.append((column, desc))
        return self

    def limit(self, _count: int) -> "FakeTable":
        return self

    def execute(self) -> FakeResponse:
        queue = self.response_queue[self._action]
        return FakeResponse(queue.pop(0) if queue else [])


@dataclass
class FakeClient:
    tables: dict[str, FakeTable] = field(default_factory=dict)

    def table(self, name: str) -> FakeTable:
        if name not in self.tables:
            self.tables[name] = FakeTable(name)
        return self.tables[name]


def _row(**overrides: object) -> dict[str, object]:
    row: dict[str, object] = {
        "ingredient_key": "xyzfood123",
        "requested_by": "resolve",
        "status": "pending",
        "attempts": 0,
        "last_attempt_at": None,
        "next_attempt_at": None,
        "last_error": None,
        "result_json": None,
    }
    row.update(overrides)
    return row


def test_get_maps_row_to_task() -> None:
    client = FakeClient()
    table = client.table("discovery_tasks")
    table.queue(
        "select",
        [
            _row(
                status="resolved",
                attempts=2,
                last_attempt_at="2026-01-05T12:00:00+00:00",
                result_json={
                    "name": "Mystery stew",
                    "nutrients": {"calories": 120, "protein": 8},
                    "confidence": 0.4,
                    "provenance": ["ai_estimate"],
                    "basis": {"quantity": 100, "unit": "g"},
                    "barcode": None,
                    "brand": None,
                },
            )
        ],
    )
    repo = SupabaseDiscoveryTaskRepository(client)  # type: ignore[arg-type]

    task = repo.get("xyzfood123")

    assert task is not None
    assert task.status is DiscoveryStatus.RESOLVED
    assert task.attempts == 2
    assert task.last_attempt_at == datetime(2026, 1, 5, 12, 0, tzinfo=UTC)
    assert task.result is not None
    assert task.result.nutrients.calories == 120
    assert task.result.provenance == ("ai_estimate",)
    assert task.result.basis == PER_100_G
    assert table.last_filters == [("ingredient_key", "xyzfood123")]


def test_get_missing_task() -> None:
    repo = SupabaseDiscoveryTaskRepository(FakeClient())  # type: ignore[arg-type]

    assert repo.get("nothing") is None


def test_add_ignores_existing_rows() -> None:
    client = FakeClient()
    table = client.table("discovery_tasks")
    table.queue("select", [_row(requested_by="meal")])
    repo = SupabaseDiscoveryTaskRepository(client)  # type: ignore[arg-type]

    stored = repo.add(DiscoveryTask(ingredient_key="xyzfood123", requested_by="api"))

    assert stored.requested_by == "meal"
    assert table.upsert_options == {
        "on_conflict": "ingredient_key",
        "ignore_duplicates": True,
    }
    assert isinstance(table.last_payload, dict)
    assert table.last_payload["status"] == "pending"


def test_list_pending_filters_due_tasks() -> None:
    client = FakeClient()
    table = client.table("discovery_tasks")
    table.queue("select", [_row(), _row(ingredient_key="second")])
    repo = SupabaseDiscoveryTaskRepository(client)  # type: ignore[arg-type]
    now = datetime(2026, 1, 5, 12, 0, tzinfo=UTC)

    tasks = repo.list_pending(5, now)

    assert [task.ingredient_key for task in tasks] == ["xyzfood123", "second"]
    assert ("status", "pending") in table.last_filters
    assert (
        "or",
        "next_attempt_at.is.null,next_attempt_at.lte.2026-01-05T12:00:00+00:00",
    ) in table.last_filters
    assert table.orders == [("created_at", False)]


def test_list_stale_selects_in_progress_tasks_past_the_lease() -> None:
    client = FakeClient()
    table = client.table("discovery_tasks")
    table.queue(
        "select",
        [_row(status="in_progress", attempts=1, last_attempt_at="2026-01-05T11:00:00")],
    )
    repo = SupabaseDiscoveryTaskRepository(client)  # type: ignore[arg-type]
    stale_before = datetime(2026, 1, 5, 11, 55, tzinfo=UTC)

    tasks = repo.list_stale(5, stale_before)

    assert tasks[0].status is DiscoveryStatus.IN_PROGRESS
    assert table.last_filters == [
        ("status", "in_progress"),
        ("last_attempt_at<", "2026-01-05T11:55:00+00:00"),
    ]
    assert table.orders == [("last_attempt_at", False)]


def test_list_by_status_newest_first() -> None:
    client = FakeClient()
    table = client.table("discovery_tasks")
    table.queue("select", [_row(status="failed", last_error="gave up")])
    repo = SupabaseDiscoveryTaskRepository(client)  # type: ignore[arg-type]

    tasks = repo.list_by_status(DiscoveryStatus.FAILED, 10)

    assert tasks[0].last_error == "gave up"
    assert table.last_filters == [("status", "failed")]
    assert table.orders == [("created_at", True)]


def test_compare_and_set_filters_on_expected_status() -> None:
    client = FakeClient()
    table = client.table("discovery_tasks")
    table.queue("update", [_row(status="resolved")])
    repo = SupabaseDiscoveryTaskRepository(client)  # type: ignore[arg-type]
    profile = CanonicalNutrientProfile(
        name="Banana",
        nutrients=NutrientProfile(calories=89),
        confidence=0.95,
        provenance=("curated", "openfoodfacts"),
        basis=PER_100_G,
    )
    task = DiscoveryTask(
        ingredient_key="banana",
        requested_by="resolve",
        status=DiscoveryStatus.RESOLVED,
        attempts=1,
        result=profile,
    )

    assert repo.compare_and_set(task, DiscoveryStatus.IN_PROGRESS) is True
    assert table.last_filters == [
        ("ingredient_key", "banana"),
        ("status", "in_progress"),
    ]
    payload = table.last_payload
    assert isinstance(payload, dict)
    assert payload["status"] == "resolved"
    assert payload["result_json"]["provenance"] == ["curated", "openfoodfacts"]
    assert "updated_at" in payload


def test_compare_and_set_reports_lost_race() -> None:
    repo = SupabaseDiscoveryTaskRepository(FakeClient())  # type: ignore[arg-type]
    task = DiscoveryTask(ingredient_key="banana", requested_by="resolve")

    assert repo.compare_and_set(task, DiscoveryStatus.PENDING) is False


def test_compare_and_set_can_require_attempt_count() -> None:
    client = FakeClient()
    table = client.table("discovery_tasks")
    repo = SupabaseDiscoveryTaskRepository(client)  # type: ignore[arg-type]
    task = DiscoveryTask(ingredient_key="banana", requested_by="resolve", attempts=2)

    repo.compare_and_set(task, DiscoveryStatus.IN_PROGRESS, expected_attempts=2)

    assert ("attempts", 2) in table.last_filters
