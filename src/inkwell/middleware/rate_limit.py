"""
Per-IP fixed-window rate limiting for `/api/*`.

Each client IP gets a Redis counter `inkwell:ratelimit:<ip>` that is incremented per request and
expires `RATE_LIMIT_PERIOD_SECONDS` after the first hit. Past `RATE_LIMIT_REQUESTS` the request is
answered with 429 until the window expires. Active when `RATE_LIMIT_ENABLED` is set, or in
production when it is left unset.

Redis failures fail open: the error is logged and the request proceeds.
"""

from typing import Callable, Optional, Tuple

from fastapi import Request, Response
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from inkwell.config import settings
from inkwell.managers.logging_manager import get_logger
from inkwell.managers.redis_manager import RedisManager, redis_manager
from inkwell.utils.logging_utils import log_security_event

logger = get_logger(prefix="[RATE_LIMIT]")

KEY_PREFIX = "inkwell:ratelimit:"
RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."


def client_ip(request: Request) -> str:
    """First address of `X-Forwarded-For` (one trusted proxy), else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimiter:
    def __init__(self, manager: RedisManager = redis_manager, limit: Optional[int] = None, period: Optional[int] = None):
        self.manager = manager
        self.limit = limit or settings.RATE_LIMIT_REQUESTS
        self.period = period or settings.RATE_LIMIT_PERIOD_SECONDS

    async def hit(self, ip: str) -> Tuple[bool, int, int]:
        """
        Count one request for `ip`.

        Returns:
            Tuple[bool, int, int]: `(allowed, remaining, seconds_until_reset)`.

        Raises:
            RedisError | OSError: When Redis is unreachable; the caller decides to fail open.
        """
        redis = await self.manager.get_redis()
        key = KEY_PREFIX + ip
        count = await redis.incr(key)
        if count == 1:
            await redis.expire(key, self.period)
        ttl = await redis.ttl(key)
        if ttl < 0:
            await redis.expire(key, self.period)
            ttl = self.period
        return count <= self.limit, max(self.limit - count, 0), ttl


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limiter: Optional[RateLimiter] = None, enabled: Optional[bool] = None):
        super().__init__(app)
        self.limiter = limiter or RateLimiter()
        self.enabled = settings.rate_limit_active if enabled is None else enabled

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.enabled or not request.url.path.startswith("/api/") or request.method == "OPTIONS":
            return await call_next(request)

        ip = client_ip(request)
        try:
            allowed, remaining, reset = await self.limiter.hit(ip)
        except (RedisError, OSError) as e:
            logger.warning("Rate limiter unavailable, allowing request from %s: %s", ip, e)
            return await call_next(request)

        headers = {
            "RateLimit-Limit": str(self.limiter.limit),
            "RateLimit-Remaining": str(remaining),
            "RateLimit-Reset": str(reset),
        }
        if not allowed:
            log_security_event("rate_limited", ip_address=ip, success=False, details={"path": request.url.path})
            headers["Retry-After"] = str(reset)
            return JSONResponse(status_code=429, content={"message": RATE_LIMIT_MESSAGE}, headers=headers)

        response = await call_next(request)
        response.headers.update(headers)
        return response
