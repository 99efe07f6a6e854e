"""Profile cache abstractions."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol


class Cache(Protocol):
    """Key-value cache for reconciled profiles."""

    def get(self, key: str) -> object | None:
        """Return a cached value if present and not expired."""

    def set(self, key: str, value: object, ttl_seconds: int) -> None:
        """Store a cached value with a TTL in seconds."""


@dataclass
class _CacheEntry:
    value: object
    expires_at: datetime


@dataclass
class InMemoryCache(Cache):
    """Process-local cache; entries expire lazily on read."""

    _entries: dict[str, _CacheEntry]

    def __init__(self) -> None:
        self._entries = {}

    def get(self, key: str) -> object | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if datetime.now(tz=UTC) >= entry.expires_at:
            self._entries.pop(key, None)
            return None
        return entry.value

    def set(self, key: str, value: object, ttl_seconds: int) -> None:
        expires_at = datetime.now(tz=UTC) + timedelta(seconds=ttl_seconds)
        self._entries[key] = _CacheEntry(value=value, expires_at=expires_at)
