"""Cache providers.

MemoryCacheProvider is a dict-based cache with per-entry TTL - fast but not
shared across processes.  For multi-worker deployments, swap in a Redis
adapter implementing ICacheProvider without changing the response cache.
"""

from synchat.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
