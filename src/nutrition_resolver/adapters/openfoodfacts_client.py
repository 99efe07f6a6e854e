"""Open Food Facts API client."""

from dataclasses import dataclass
from typing import Protocol

import httpx

_USER_AGENT = "nutrition-resolver/0.1 (+https://world.openfoodfacts.org)"


class OpenFoodFactsClient(Protocol):
    """Interface for Open Food Facts product lookups."""

    async def get_product(self, barcode: str) -> dict[str, object] | None:
        """Return raw product data for a barcode, or None when unknown."""

    async def search_products(
        self, query: str, page_size: int = 5
    ) -> dict[str, object]:
        """Search products by free text and return raw API data."""


@dataclass
class HttpxOpenFoodFactsClient(OpenFoodFactsClient):
    """HTTPX-backed Open Food Facts client."""

    base_url: str
    http_client: httpx.AsyncClient
    timeout_seconds: float = 8.0

    @classmethod
    def create(cls, base_url: str) -> "HttpxOpenFoodFactsClient":
        """Create a client with a managed httpx session."""
        return cls(
            base_url=base_url,
            http_client=httpx.AsyncClient(headers={"User-Agent": _USER_AGENT}),
        )

    async def get_product(self, barcode: str) -> dict[str, object] | None:
        """Fetch a product by barcode; 404 and status=0 mean not found."""
        url = f"{self.base_url}/api/v2/product/{barcode}.json"
        response = await self.http_client.get(url, timeout=self.timeout_seconds)
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        response.raise_for_status()
        payload = response.json()
        if payload.get("status") != 1:
            return None
        product = payload.get("product")
        return product if isinstance(product, dict) and product else None

    async def search_products(
        self, query: str, page_size: int = 5
    ) -> dict[str, object]:
        """Search the crowd-sourced product database."""
        url = f"{self.base_url}/cgi/search.pl"
        response = await self.http_client.get(
            url,
            params={
                "search_terms": query,
                "search_simple": 1,
                "json": 1,
                "page_size": page_size,
            },
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        return response.json()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
