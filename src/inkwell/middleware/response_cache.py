"""
Response caching for public GET endpoints.

Paths come from `CACHE_PATHS`: an entry ending in `/` matches every path below it, any other entry
matches exactly. Only anonymous requests are cached (admin paths excepted), and only 200 JSON
responses are stored. Entries live `CACHE_TTL_SECONDS` and are keyed by
`__inkwell__<path>?<query>`. Responses carry `X-Cache: HIT` or `X-Cache: MISS`.

Writes invalidate entries through `invalidate_content_cache()`.
"""

import json
from typing import Callable, List, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from inkwell.config import settings
from inkwell.managers import cache_manager
from inkwell.managers.cache_manager import ResponseCache
from inkwell.managers.logging_manager import get_logger

logger = get_logger(prefix="[CACHE]")

KEY_PREFIX = "__inkwell__"
ADMIN_PREFIX = "/api/admin"


def cache_key(request: Request) -> str:
    query = request.url.query
    return f"{KEY_PREFIX}{request.url.path}{'?' + query if query else ''}"


def path_is_cacheable(path: str, patterns: List[str]) -> bool:
    for pattern in patterns:
        if pattern.endswith("/"):
            if path.startswith(pattern):
                return True
        elif path == pattern:
            return True
    return False


class ResponseCacheMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, cache: Optional[ResponseCache] = None, paths: Optional[List[str]] = None):
        super().__init__(app)
        self._cache = cache
        self.paths = paths if paths is not None else settings.cache_paths_list

    @property
    def cache(self) -> ResponseCache:
        return self._cache or cache_manager.response_cache

    def _should_cache(self, request: Request) -> bool:
        if request.method != "GET":
            return False
        path = request.url.path
        if not path_is_cacheable(path, self.paths):
            return False
        if request.headers.get("authorization") and not path.startswith(ADMIN_PREFIX):
            return False
        return True

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self._should_cache(request):
            return await call_next(request)

        key = cache_key(request)
        cached = await self.cache.get(key)
        if cached is not None:
            return JSONResponse(content=cached, headers={"X-Cache": "HIT"})

        response = await call_next(request)
        if response.status_code != 200 or "application/json" not in response.headers.get("content-type", ""):
            return response

        body = b"".join([chunk async for chunk in response.body_iterator])
        try:
            await self.cache.set(key, json.loads(body))
        except ValueError as e:
            logger.warning("Could not cache response for %s: %s", key, e)

        headers = dict(response.headers)
        headers.pop("content-length", None)
        headers["X-Cache"] = "MISS"
        return Response(
            content=body,
            status_code=response.status_code,
            headers=headers,
            media_type=response.media_type,
        )
