"""USDA FoodData Central API client."""

from dataclasses import dataclass
from typing import Protocol

import httpx


class FdcClient(Protocol):
    """Interface for FoodData Central API interactions."""

    async def search_foods(
        self,
        query: str,
        page_size: int = 10,
        data_types: list[str] | None = None,
    ) -> dict[str, object]:
        """Search foods by query and return raw API data."""


@dataclass
class HttpxFdcClient(FdcClient):
    """HTTPX-backed FDC client."""

    api_key: str
    base_url: str
    http_client: httpx.AsyncClient
    timeout_seconds: float = 15.0

    @classmethod
    def create(cls, api_key: str, base_url: str) -> "HttpxFdcClient":
        """Create an FDC client with a managed httpx session."""
        return cls(api_key=api_key, base_url=base_url, http_client=httpx.AsyncClient())

    async def search_foods(
        self,
        query: str,
        page_size: int = 10,
        data_types: list[str] | None = None,
    ) -> dict[str, object]:
        """Search foods by query, optionally restricted to FDC data types."""
        url = f"{self.base_url}/foods/search"
        body: dict[str, object] = {"query": query, "pageSize": page_size}
        if data_types:
            body["dataType"] = data_types
        response = await self.http_client.post(
            url,
            params={"api_key": self.api_key},
            json=body,
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        return response.json()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
