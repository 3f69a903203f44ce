"""
# Response Cache Manager

Cache service for public GET responses. Callers see one interface regardless of backend:

| Method | Behavior |
|--------|----------|
| `get(key)` | Cached value or `None` (miss, expired, or backend failure) |
| `set(key, value, ttl=None)` | Store a JSON-serializable value for `ttl` seconds (default `CACHE_TTL_SECONDS`) |
| `clear(pattern=None)` | Drop keys containing `pattern`, or everything when `pattern` is `None` |

## Backends

- **`MemoryCacheBackend`**: per-process dict with expiry timestamps, holding at most
  `CACHE_MAX_ENTRIES` keys. Fine for a single worker.
- **`RedisCacheBackend`**: shared across workers and hosts; values stored as JSON strings under
  the `inkwell:cache:` namespace. Redis errors degrade to cache misses.

The backend is chosen by `CACHE_BACKEND` when the module-level `response_cache` is created; tests
and alternative deployments can construct `ResponseCache` with any backend.
"""

import json
import time
from collections import OrderedDict
from typing import Any, Optional, Tuple

from redis.exceptions import RedisError

from inkwell.config import settings
from inkwell.managers.logging_manager import get_logger
from inkwell.managers.redis_manager import RedisManager, redis_manager

logger = get_logger(prefix="[CACHE]")

REDIS_KEY_PREFIX = "inkwell:cache:"


class MemoryCacheBackend:
    """
    In-process TTL store with a size bound.

    When full, `set()` first sweeps expired entries and then evicts the oldest writes, so distinct
    query strings cannot grow the store without limit.
    """

    def __init__(self, max_entries: Optional[int] = None):
        self.max_entries = max_entries or settings.CACHE_MAX_ENTRIES
        self._entries: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def _sweep_expired(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at <= time.monotonic():
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: Any, ttl: int) -> None:
        now = time.monotonic()
        self._entries.pop(key, None)
        if len(self._entries) >= self.max_entries:
            self._sweep_expired(now)
        while len(self._entries) >= self.max_entries:
            self._entries.popitem(last=False)
        self._entries[key] = (now + ttl, value)

    async def clear(self, pattern: Optional[str] = None) -> int:
        if pattern is None:
            removed = len(self._entries)
            self._entries.clear()
            return removed
        matching = [key for key in self._entries if pattern in key]
        for key in matching:
            self._entries.pop(key, None)
        return len(matching)


class RedisCacheBackend:
    """Redis-backed store shared between processes."""

    def __init__(self, manager: RedisManager = redis_manager):
        self._manager = manager

    async def get(self, key: str) -> Optional[Any]:
        try:
            redis = await self._manager.get_redis()
            raw = await redis.get(REDIS_KEY_PREFIX + key)
        except (RedisError, OSError) as e:
            logger.warning("Cache read failed for %s: %s", key, e)
            return None
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any, ttl: int) -> None:
        try:
            redis = await self._manager.get_redis()
            await redis.setex(REDIS_KEY_PREFIX + key, ttl, json.dumps(value))
        except (RedisError, OSError) as e:
            logger.warning("Cache write failed for %s: %s", key, e)

    async def clear(self, pattern: Optional[str] = None) -> int:
        match = f"{REDIS_KEY_PREFIX}*{pattern}*" if pattern else f"{REDIS_KEY_PREFIX}*"
        removed = 0
        try:
            redis = await self._manager.get_redis()
            async for key in redis.scan_iter(match=match):
                removed += await redis.delete(key)
        except (RedisError, OSError) as e:
            logger.warning("Cache clear failed for pattern %s: %s", pattern, e)
        return removed


class ResponseCache:
    """Cache service wrapping a backend with the configured default TTL."""

    def __init__(self, backend=None, default_ttl: Optional[int] = None):
        self.backend = backend or MemoryCacheBackend()
        self.default_ttl = default_ttl or settings.CACHE_TTL_SECONDS

    async def get(self, key: str) -> Optional[Any]:
        return await self.backend.get(key)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        await self.backend.set(key, value, ttl or self.default_ttl)

    async def clear(self, pattern: Optional[str] = None) -> int:
        removed = await self.backend.clear(pattern)
        logger.debug("Cleared %d cache entries (pattern=%s)", removed, pattern)
        return removed


def build_response_cache() -> ResponseCache:
    """Create the cache service for the configured backend."""
    if settings.CACHE_BACKEND == "redis":
        logger.info("Using Redis response cache backend")
        return ResponseCache(RedisCacheBackend())
    logger.info("Using in-memory response cache backend")
    return ResponseCache(MemoryCacheBackend())


response_cache = build_response_cache()


async def invalidate_content_cache(cache: Optional[ResponseCache] = None) -> None:
    """Drop cached post listings and search results after a post or comment write."""
    cache = cache or response_cache
    await cache.clear("/api/posts")
    await cache.clear("/api/search")
