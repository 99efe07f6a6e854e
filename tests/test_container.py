"""Tests for container wiring."""

import asyncio

from nutrition_resolver.containers import build_container
from nutrition_resolver.services.discovery import InMemoryDiscoveryTaskRepository


def test_build_container_creates_services(settings) -> None:
    container = build_container(settings)

    fan_out = container.resolution_service.fan_out
    assert [adapter.source_id for adapter in fan_out.adapters] == [
        "curated",
        "openfoodfacts",
        "openfoodfacts_search",
    ]
    assert isinstance(
        container.discovery_queue.repository, InMemoryDiscoveryTaskRepository
    )
    assert container.discovery_worker.queue is container.discovery_queue
    assert container.discovery_worker.lease_seconds == settings.discovery_lease_seconds
    asyncio.run(container.close_resources())


def test_optional_sources_are_wired_when_configured(settings) -> None:
    configured = settings.model_copy(
        update={
            "edamam_app_id": "app",
            "edamam_app_key": "key",
            "openai_api_key": "sk-test",
        }
    )

    container = build_container(configured)

    adapters = container.resolution_service.fan_out.adapters
    assert [adapter.source_id for adapter in adapters] == [
        "curated",
        "openfoodfacts",
        "openfoodfacts_search",
        "edamam",
        "ai_estimate",
    ]
    assert [adapter.is_fallback for adapter in adapters][-1] is True
    asyncio.run(container.close_resources())
