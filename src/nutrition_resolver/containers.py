"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from nutrition_resolver.adapters.edamam_client import HttpxEdamamClient
from nutrition_resolver.adapters.fdc_client import HttpxFdcClient
from nutrition_resolver.adapters.openai_estimate_client import OpenAIEstimateClient
from nutrition_resolver.adapters.openfoodfacts_client import HttpxOpenFoodFactsClient
from nutrition_resolver.adapters.supabase_discovery_repository import (
    SupabaseDiscoveryTaskRepository,
)
from nutrition_resolver.config import Settings
from nutrition_resolver.services.cache import InMemoryCache
from nutrition_resolver.services.discovery import (
    DiscoveryQueue,
    DiscoveryTaskRepository,
    DiscoveryWorker,
    InMemoryDiscoveryTaskRepository,
)
from nutrition_resolver.services.portions import PortionScaler
from nutrition_resolver.services.resolution import ResolutionService
from nutrition_resolver.services.source_adapters import (
    AiEstimateSource,
    EdamamSource,
    FdcSource,
    OpenFoodFactsBarcodeSource,
    OpenFoodFactsSearchSource,
)
from nutrition_resolver.services.sources import SourceAdapter, SourceFanOut


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    resolution_service: ResolutionService
    discovery_queue: DiscoveryQueue
    discovery_worker: DiscoveryWorker
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    fdc_client = HttpxFdcClient.create(
        api_key=resolved_settings.fdc_api_key,
        base_url=resolved_settings.fdc_base_url,
    )
    off_client = HttpxOpenFoodFactsClient.create(
        base_url=resolved_settings.openfoodfacts_base_url
    )
    adapters: list[SourceAdapter] = [
        FdcSource(fdc_client),
        OpenFoodFactsBarcodeSource(off_client),
        OpenFoodFactsSearchSource(off_client),
    ]
    closers: list[Callable[[], Awaitable[None]]] = [
        fdc_client.close,
        off_client.close,
    ]
    if resolved_settings.edamam_enabled:
        edamam_client = HttpxEdamamClient.create(
            app_id=resolved_settings.edamam_app_id or "",
            app_key=resolved_settings.edamam_app_key or "",
            base_url=resolved_settings.edamam_base_url,
        )
        adapters.append(EdamamSource(edamam_client))
        closers.append(edamam_client.close)
    if resolved_settings.openai_api_key:
        estimate_client = OpenAIEstimateClient.create(
            api_key=resolved_settings.openai_api_key,
            model=resolved_settings.openai_model,
            store=resolved_settings.openai_store,
        )
        adapters.append(AiEstimateSource(estimate_client))
        closers.append(estimate_client.close)

    repository: DiscoveryTaskRepository
    if resolved_settings.supabase_enabled:
        supabase_client = create_client(
            resolved_settings.supabase_url or "",
            resolved_settings.supabase_service_key or "",
        )
        repository = SupabaseDiscoveryTaskRepository(supabase_client)
    else:
        repository = InMemoryDiscoveryTaskRepository()

    fan_out = SourceFanOut(
        adapters, timeout_seconds=resolved_settings.adapter_timeout_seconds
    )
    discovery_queue = DiscoveryQueue(repository)
    discovery_worker = DiscoveryWorker(
        queue=discovery_queue,
        fan_out=fan_out,
        acceptance_threshold=resolved_settings.acceptance_threshold,
        max_attempts=resolved_settings.discovery_max_attempts,
        backoff_seconds=resolved_settings.discovery_backoff_seconds,
        lease_seconds=resolved_settings.discovery_lease_seconds,
    )
    resolution_service = ResolutionService(
        fan_out=fan_out,
        queue=discovery_queue,
        cache=InMemoryCache(),
        scaler=PortionScaler(),
        acceptance_threshold=resolved_settings.acceptance_threshold,
        profile_ttl_seconds=resolved_settings.profile_cache_ttl_seconds,
        request_timeout_seconds=resolved_settings.request_timeout_seconds,
    )

    async def close_resources() -> None:
        for close in closers:
            await close()

    return AppContainer(
        settings=resolved_settings,
        resolution_service=resolution_service,
        discovery_queue=discovery_queue,
        discovery_worker=discovery_worker,
        close_resources=close_resources,
    )
