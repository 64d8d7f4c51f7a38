"""In-memory cache provider using cachetools.TLRUCache.

Simple, fast cache suitable for development and single-process deployments.
Can be swapped for Redis or another backend via the ICacheProvider interface.
"""

from __future__ import annotations

import time
from typing import Any, NamedTuple

import structlog
from cachetools import TLRUCache

from synchat.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)


class _Entry(NamedTuple):
    value: Any
    ttl: float


def _time_to_use(_key: str, entry: _Entry, now: float) -> float:
    return now + entry.ttl


class MemoryCacheProvider(ICacheProvider):
    """In-memory cache with per-entry TTL backed by ``cachetools.TLRUCache``.

    Parameters
    ----------
    max_size:
        Maximum number of entries before the least-recently-used entry
        is evicted.
    ttl:
        Default time-to-live in seconds, used when :meth:`set` gets none.
    timer:
        Clock used for expiry; tests pass a fake to step time forward.
    """

    def __init__(self, max_size: int = 1000, ttl: int = 3600, timer=time.monotonic) -> None:
        self._default_ttl = ttl
        self._cache: TLRUCache[str, _Entry] = TLRUCache(
            maxsize=max_size, ttu=_time_to_use, timer=timer
        )

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Retrieve the cached value for *key*, or ``None`` if missing/expired."""
        entry = self._cache.get(key)
        if entry is None:
            logger.debug("cache_miss", key=key)
            return None
        logger.debug("cache_hit", key=key)
        return entry.value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value* under *key*, expiring after *ttl* (or the default) seconds."""
        effective_ttl = self._default_ttl if ttl is None else ttl
        if effective_ttl <= 0:
            self._cache.pop(key, None)
            return
        self._cache[key] = _Entry(value, effective_ttl)
        logger.debug("cache_set", key=key, ttl=effective_ttl)

    async def delete(self, key: str) -> None:
        """Remove *key* from the cache (no-op if absent)."""
        self._cache.pop(key, None)
        logger.debug("cache_delete", key=key)

    async def exists(self, key: str) -> bool:
        """Return ``True`` if *key* is present and not expired."""
        return key in self._cache

    async def expire(self, key: str, ttl: int) -> bool:
        """Restart the expiry clock of *key* with a new *ttl*."""
        entry = self._cache.get(key)
        if entry is None:
            return False
        await self.set(key, entry.value, ttl)
        return True
