"""
VoyageWatch — Keyed TTL Cache
=============================
Injected cache used for last-known vessel positions and weather responses.

Two interchangeable backends:
  MemoryCache  in-process cachetools TLRUCache, per-entry TTL
  RedisCache   redis.asyncio, JSON values, shared across service instances

Values must be JSON-serialisable so both backends behave the same.
"""

import json
import logging
import threading
import time
from typing import Any, Callable, NamedTuple, Optional

from cachetools import TLRUCache

log = logging.getLogger("common.cache")


class _Entry(NamedTuple):
    value: Any
    ttl:   float


def _entry_expiry(_key, entry: _Entry, now: float) -> float:
    return now + entry.ttl


class MemoryCache:
    """Process-local cache; entries expire independently of use."""

    def __init__(self, maxsize: int = 4096, timer: Callable[[], float] = time.monotonic):
        self._data = TLRUCache(maxsize=maxsize, ttu=_entry_expiry, timer=timer)
        self._lock = threading.Lock()

    async def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._data.get(key)
        return None if entry is None else entry.value

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        with self._lock:
            self._data[key] = _Entry(value, max(0, int(ttl_seconds)))

    async def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    async def ping(self) -> bool:
        return True


class RedisCache:
    """Redis-backed cache; survives restarts and is shared across workers."""

    def __init__(self, url: str, prefix: str = "voyagewatch:"):
        import redis.asyncio as aioredis

        self._client = aioredis.from_url(url, decode_responses=True, socket_timeout=2)
        self._prefix = prefix

    async def get(self, key: str) -> Optional[Any]:
        raw = await self._client.get(self._prefix + key)
        return json.loads(raw) if raw else None

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        await self._client.setex(self._prefix + key, max(1, int(ttl_seconds)), json.dumps(value, default=str))

    async def delete(self, key: str) -> None:
        await self._client.delete(self._prefix + key)

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def close(self) -> None:
        await self._client.aclose()


def build_cache(redis_url: Optional[str] = None):
    """Redis when a URL is configured, in-process memory otherwise."""
    if redis_url:
        log.info("Using Redis cache")
        return RedisCache(redis_url)
    log.info("Using in-process memory cache")
    return MemoryCache()
