"""Shared test fixtures."""

import asyncio
import logging
from dataclasses import dataclass, field

import pytest

from nutrition_resolver.config import Settings
from nutrition_resolver.containers import AppContainer
from nutrition_resolver.domain.nutrition import (
    PER_100_G,
    FoodCandidate,
    NutrientProfile,
)
from nutrition_resolver.domain.resolution import normalize_barcode, normalize_name
from nutrition_resolver.services.cache import InMemoryCache
from nutrition_resolver.services.discovery import (
    DiscoveryQueue,
    DiscoveryWorker,
    InMemoryDiscoveryTaskRepository,
)
from nutrition_resolver.services.portions import PortionScaler
from nutrition_resolver.services.resolution import ResolutionService
from nutrition_resolver.services.sources import SourceFanOut

APPLE_JUICE_BARCODE = "012345678905"


@pytest.fixture(autouse=True)
def _reset_app_logger() -> None:
    """Let records reach caplog even after an app configured logging."""
    logger = logging.getLogger("nutrition_resolver")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@dataclass
class FakeSourceAdapter:
    """Source adapter serving canned candidates keyed by normalized query."""

    source_id: str
    text_results: dict[str, list[FoodCandidate]] = field(default_factory=dict)
    barcode_results: dict[str, FoodCandidate] = field(default_factory=dict)
    supports_barcode: bool = True
    supports_text: bool = True
    is_fallback: bool = False
    delay_seconds: float = 0.0
    error: Exception | None = None
    calls: list[str] = field(default_factory=list)

    async def search_by_barcode(self, code: str) -> FoodCandidate | None:
        self.calls.append(code)
        await self._simulate()
        return self.barcode_results.get(normalize_barcode(code))

    async def search_by_text(self, query: str) -> list[FoodCandidate]:
        self.calls.append(query)
        await self._simulate()
        return list(self.text_results.get(normalize_name(query), []))

    async def _simulate(self) -> None:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.error is not None:
            raise self.error


def _candidate(
    name: str, source_id: str, confidence: float, **nutrients: float
) -> FoodCandidate:
    return FoodCandidate(
        name=name,
        source_id=source_id,
        basis=PER_100_G,
        nutrients=NutrientProfile(**nutrients),
        confidence=confidence,
    )


@pytest.fixture
def curated_source() -> FakeSourceAdapter:
    return FakeSourceAdapter(
        source_id="curated",
        text_results={
            "banana": [
                _candidate(
                    "Bananas, raw",
                    "curated",
                    0.9,
                    calories=89,
                    protein=1.1,
                    carbs=22.8,
                    fat=0.3,
                    fiber=2.6,
                    sugar=12.2,
                )
            ],
            "peanut butter": [
                _candidate(
                    "Peanut butter, smooth",
                    "curated",
                    0.9,
                    calories=588,
                    protein=25,
                    carbs=20,
                    fat=50,
                    fiber=6,
                )
            ],
        },
        barcode_results={
            APPLE_JUICE_BARCODE: FoodCandidate(
                name="Apple juice",
                source_id="curated",
                basis=PER_100_G,
                nutrients=NutrientProfile(calories=52, carbs=13, sugar=10),
                confidence=0.8,
                barcode=APPLE_JUICE_BARCODE,
            )
        },
    )


@pytest.fixture
def crowd_source() -> FakeSourceAdapter:
    return FakeSourceAdapter(
        source_id="openfoodfacts",
        text_results={
            "banana": [_candidate("Banana", "openfoodfacts", 0.7, calories=93)],
        },
    )


@pytest.fixture
def estimate_source() -> FakeSourceAdapter:
    return FakeSourceAdapter(
        source_id="ai_estimate",
        supports_barcode=False,
        is_fallback=True,
        text_results={
            "mystery stew": [
                _candidate("Mystery stew", "ai_estimate", 0.4, calories=120, protein=8)
            ],
        },
    )


@pytest.fixture
def fan_out(
    curated_source: FakeSourceAdapter,
    crowd_source: FakeSourceAdapter,
    estimate_source: FakeSourceAdapter,
) -> SourceFanOut:
    return SourceFanOut(
        [curated_source, crowd_source, estimate_source], timeout_seconds=1.0
    )


@pytest.fixture
def discovery_repository() -> InMemoryDiscoveryTaskRepository:
    return InMemoryDiscoveryTaskRepository()


@pytest.fixture
def discovery_queue(
    discovery_repository: InMemoryDiscoveryTaskRepository,
) -> DiscoveryQueue:
    return DiscoveryQueue(discovery_repository)


@pytest.fixture
def resolution_service(
    fan_out: SourceFanOut, discovery_queue: DiscoveryQueue
) -> ResolutionService:
    return ResolutionService(
        fan_out=fan_out,
        queue=discovery_queue,
        cache=InMemoryCache(),
        scaler=PortionScaler(),
        acceptance_threshold=0.5,
        request_timeout_seconds=2.0,
    )


@pytest.fixture
def discovery_worker(
    fan_out: SourceFanOut, discovery_queue: DiscoveryQueue
) -> DiscoveryWorker:
    return DiscoveryWorker(
        queue=discovery_queue,
        fan_out=fan_out,
        acceptance_threshold=0.5,
        max_attempts=3,
        backoff_seconds=30.0,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        admin_token="admin-token",
        fdc_api_key="fdc-key",
        edamam_app_id=None,
        edamam_app_key=None,
        openai_api_key=None,
        supabase_url=None,
        supabase_service_key=None,
        discovery_workers=0,
    )


@pytest.fixture
def container(
    settings: Settings,
    resolution_service: ResolutionService,
    discovery_queue: DiscoveryQueue,
    discovery_worker: DiscoveryWorker,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        resolution_service=resolution_service,
        discovery_queue=discovery_queue,
        discovery_worker=discovery_worker,
        close_resources=close_resources,
    )
