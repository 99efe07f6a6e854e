"""Source adapter contract and concurrent fan-out."""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, TypeVar

from nutrition_resolver.domain.errors import AdapterTimeoutError
from nutrition_resolver.domain.nutrition import FoodCandidate
from nutrition_resolver.domain.resolution import FoodQuery, QueryType

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

_logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class SourceAdapter(Protocol):
    """Uniform query contract for an external nutrition provider."""

    source_id: str
    supports_barcode: bool
    supports_text: bool
    is_fallback: bool

    async def search_by_barcode(self, code: str) -> FoodCandidate | None:
        """Return the product registered under a barcode, if any."""

    async def search_by_text(self, query: str) -> list[FoodCandidate]:
        """Return candidates matching a free-text food name."""


def supports(adapter: SourceAdapter, query: FoodQuery) -> bool:
    if query.query_type is QueryType.BARCODE:
        return adapter.supports_barcode
    return adapter.supports_text


@dataclass
class SourceFanOut:
    """Queries every adapter concurrently with isolated failures."""

    adapters: list[SourceAdapter]
    timeout_seconds: float = 5.0

    async def search(
        self, query: FoodQuery, *, deadline_seconds: float | None = None
    ) -> list[FoodCandidate]:
        """Return the union of candidates from every primary adapter.

        ``deadline_seconds`` bounds the whole stage; adapters still running
        at the deadline are cancelled and contribute nothing.
        """
        primaries = [
            adapter
            for adapter in self.adapters
            if not adapter.is_fallback and supports(adapter, query)
        ]
        return await self._gather(primaries, query, deadline_seconds)

    async def search_fallback(
        self, query: FoodQuery, *, deadline_seconds: float | None = None
    ) -> list[FoodCandidate]:
        """Return candidates from last-resort adapters such as AI estimates."""
        fallbacks = [
            adapter
            for adapter in self.adapters
            if adapter.is_fallback and supports(adapter, query)
        ]
        return await self._gather(fallbacks, query, deadline_seconds)

    async def _gather(
        self,
        adapters: list[SourceAdapter],
        query: FoodQuery,
        deadline_seconds: float | None,
    ) -> list[FoodCandidate]:
        if not adapters:
            return []
        tasks = [
            asyncio.create_task(self._query_adapter(adapter, query))
            for adapter in adapters
        ]
        try:
            done, pending = await asyncio.wait(tasks, timeout=deadline_seconds)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            _logger.warning(
                "Fan-out deadline hit for %s: %s adapters cancelled",
                query.ingredient_key,
                len(pending),
            )
        candidates: list[FoodCandidate] = []
        for task in tasks:
            if task in done:
                candidates.extend(task.result())
        return candidates

    async def _query_adapter(
        self, adapter: SourceAdapter, query: FoodQuery
    ) -> list[FoodCandidate]:
        try:
            return await asyncio.wait_for(
                _run_query(adapter, query), timeout=self.timeout_seconds
            )
        except TimeoutError:
            error = AdapterTimeoutError(adapter.source_id, self.timeout_seconds)
            _logger.warning("%s", error)
            return []
        except Exception:
            _logger.warning(
                "Source %s failed for %s",
                adapter.source_id,
                query.ingredient_key,
                exc_info=True,
            )
            return []


async def _run_query(adapter: SourceAdapter, query: FoodQuery) -> list[FoodCandidate]:
    if query.query_type is QueryType.BARCODE:
        candidate = await adapter.search_by_barcode(query.normalized_value)
        return [candidate] if candidate is not None else []
    return list(await adapter.search_by_text(query.value.strip()))


async def call_with_retry(
    func: "Callable[[], Awaitable[_T]]",
    *,
    action: str,
    retry_attempts: int = 1,
    retry_delay_seconds: float = 0.3,
) -> _T:
    """Call an async provider function with a short retry."""
    attempt = 0
    while True:
        try:
            return await func()
        except Exception as exc:
            attempt += 1
            _logger.debug(
                "Provider %s failed (attempt %s/%s, status=%s): %s",
                action,
                attempt,
                retry_attempts + 1,
                status_code_from_exception(exc),
                exc,
            )
            if attempt > retry_attempts:
                raise
            await asyncio.sleep(retry_delay_seconds)


def status_code_from_exception(exc: Exception) -> str:
    """Extract HTTP status code from an exception, if available."""
    response = getattr(exc, "response", None)
    status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        return str(status_code)
    return "n/a"
