"""
Key-value backends for run state.

``KeyValueStore`` is the small async contract the run state store needs:
get / set with a TTL / delete, string keys, string (JSON) values.

Backends:
- InMemoryKeyValueStore: single process, bounded, expired keys purged on write
- RedisKeyValueStore: shared across processes, TTL enforced by Redis
"""

import time
from collections import OrderedDict
from typing import Any, Protocol

import redis.asyncio as aioredis


class KeyValueStore(Protocol):
    """Async key-value store with per-key expiry."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, *, ttl_seconds: int | None = None) -> None: ...

    async def delete(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """
    Bounded process-local store used by default and in tests.

    Expired entries are dropped on every write, and the least recently used
    key is evicted once ``max_size`` keys are held, so a long-running
    service does not keep every run forever. Each run writes only under its
    own keys, so concurrent runs on one event loop never contend for an entry.
    """

    def __init__(self, *, max_size: int = 10_000) -> None:
        self._data: OrderedDict[str, tuple[str, float | None]] = OrderedDict()
        self._max_size = max_size

    async def get(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and time.monotonic() >= expires_at:
            self._data.pop(key, None)
            return None
        self._data.move_to_end(key)
        return value

    async def set(self, key: str, value: str, *, ttl_seconds: int | None = None) -> None:
        self._purge_expired()
        expires_at = time.monotonic() + ttl_seconds if ttl_seconds else None

        if key not in self._data:
            while self._data and len(self._data) >= self._max_size:
                self._data.popitem(last=False)
        self._data[key] = (value, expires_at)
        self._data.move_to_end(key)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def _purge_expired(self) -> None:
        now = time.monotonic()
        expired = [
            key
            for key, (_, expires_at) in self._data.items()
            if expires_at is not None and now >= expires_at
        ]
        for key in expired:
            del self._data[key]

    def keys(self) -> list[str]:
        return sorted(self._data)


class RedisKeyValueStore:
    """
    Redis-backed store.

    Example:
        store = RedisKeyValueStore("redis://localhost:6379/0")
        await store.set("lg:state:abc", "{...}", ttl_seconds=86400)
    """

    def __init__(self, url: str = "redis://localhost:6379/0", *, client: Any = None):
        self.url = url
        self._client = client if client is not None else aioredis.from_url(
            url, decode_responses=True
        )

    async def get(self, key: str) -> str | None:
        value = await self._client.get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, *, ttl_seconds: int | None = None) -> None:
        if ttl_seconds:
            await self._client.set(key, value, ex=ttl_seconds)
        else:
            await self._client.set(key, value)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    async def close(self) -> None:
        await self._client.aclose()
