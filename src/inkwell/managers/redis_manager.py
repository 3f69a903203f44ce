"""
# Redis Manager

Lazily created, process-wide `redis.asyncio` client. Redis backs two concerns:

- **Rate limiting**: fixed-window per-IP counters (`INCR` + `EXPIRE`).
- **Response cache**: shared cache entries when `CACHE_BACKEND=redis`.

Both callers treat Redis as optional: connection errors are logged and the request proceeds.

Usage:

```python
from inkwell.managers.redis_manager import redis_manager

redis = await redis_manager.get_redis()
await redis.incr("inkwell:ratelimit:127.0.0.1")
```
"""

from typing import Optional

import redis.asyncio as redis_asyncio
from redis.exceptions import RedisError

from inkwell.config import settings
from inkwell.managers.logging_manager import get_logger

logger = get_logger(prefix="[REDIS]")


class RedisManager:
    """Owns the async Redis client and its lifecycle."""

    def __init__(self, url: Optional[str] = None):
        self._url = url
        self._client: Optional[redis_asyncio.Redis] = None

    async def get_redis(self) -> redis_asyncio.Redis:
        """Return the shared client, creating it on first use."""
        if self._client is None:
            url = self._url or settings.REDIS_URL
            logger.info("Creating Redis client for %s", url.split("@")[-1])
            self._client = redis_asyncio.from_url(url, decode_responses=True)
        return self._client

    async def health_check(self) -> bool:
        """Ping Redis; False on any connection error."""
        try:
            client = await self.get_redis()
            return bool(await client.ping())
        except (RedisError, OSError) as e:
            logger.warning("Redis health check failed: %s", e)
            return False

    async def close(self) -> None:
        """Close the client if one was created."""
        if self._client is not None:
            try:
                await self._client.aclose()
                logger.info("Redis client closed")
            except (RedisError, OSError) as e:
                logger.warning("Error closing Redis client: %s", e)
            finally:
                self._client = None


redis_manager = RedisManager()
