from unittest.mock import AsyncMock, MagicMock, patch

from fastapi import FastAPI, Request
import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from inkwell.managers.cache_manager import MemoryCacheBackend, ResponseCache, invalidate_content_cache
from inkwell.middleware import (
    BodySanitizeMiddleware,
    RateLimitMiddleware,
    ResponseCacheMiddleware,
    SecurityHeadersMiddleware,
)
from inkwell.middleware.rate_limit import RATE_LIMIT_MESSAGE, RateLimiter, client_ip
from inkwell.middleware.response_cache import path_is_cacheable
from inkwell.middleware.sanitize import strip_operator_keys


def build_app(*middleware):
    app = FastAPI()
    calls = {"count": 0}

    @app.get("/api/posts")
    async def posts():
        calls["count"] += 1
        return {"posts": [], "served": calls["count"]}

    @app.get("/api/admin/users")
    async def admin_users():
        calls["count"] += 1
        return {"users": []}

    @app.post("/api/echo")
    async def echo(request: Request):
        return await request.json()

    @app.post("/api/raw")
    async def raw(request: Request):
        return {"body": (await request.body()).decode()}

    @app.get("/media/avatar.png")
    async def media():
        return {"ok": True}

    for cls, kwargs in middleware:
        app.add_middleware(cls, **kwargs)
    app.state.calls = calls
    return app


def client_for(app):
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


# --- Response cache ---


def test_cache_path_rules():
    patterns = ["/api/posts", "/api/search/"]
    assert path_is_cacheable("/api/posts", patterns)
    assert not path_is_cacheable("/api/posts/hello-world", patterns)
    assert path_is_cacheable("/api/search/tags", patterns)
    assert not path_is_cacheable("/api/users/alice", patterns)


@pytest.mark.asyncio
async def test_memory_backend_expires_entries():
    backend = MemoryCacheBackend()
    with patch("inkwell.managers.cache_manager.time.monotonic", return_value=100.0):
        await backend.set("key", {"a": 1}, ttl=300)
        assert await backend.get("key") == {"a": 1}
    with patch("inkwell.managers.cache_manager.time.monotonic", return_value=401.0):
        assert await backend.get("key") is None


@pytest.mark.asyncio
async def test_memory_backend_sweeps_expired_entries_when_full():
    backend = MemoryCacheBackend(max_entries=50)
    for n in range(1000):
        await backend.set(f"/api/posts?x={n}", {}, ttl=0)
    assert len(backend) <= 50


@pytest.mark.asyncio
async def test_memory_backend_evicts_oldest_live_entry():
    backend = MemoryCacheBackend(max_entries=2)
    await backend.set("first", 1, ttl=300)
    await backend.set("second", 2, ttl=300)
    await backend.set("third", 3, ttl=300)
    assert len(backend) == 2
    assert await backend.get("first") is None
    assert await backend.get("third") == 3


@pytest.mark.asyncio
async def test_invalidation_clears_posts_and_search_only():
    cache = ResponseCache(MemoryCacheBackend(), default_ttl=60)
    await cache.set("__inkwell__/api/posts?page=1", {})
    await cache.set("__inkwell__/api/search/tags", {})
    await cache.set("__inkwell__/api/admin/stats", {})

    await invalidate_content_cache(cache)

    assert await cache.get("__inkwell__/api/posts?page=1") is None
    assert await cache.get("__inkwell__/api/search/tags") is None
    assert await cache.get("__inkwell__/api/admin/stats") == {}


@pytest.mark.asyncio
async def test_cache_middleware_hit_and_miss():
    cache = ResponseCache(MemoryCacheBackend(), default_ttl=60)
    app = build_app((ResponseCacheMiddleware, {"cache": cache, "paths": ["/api/posts"]}))

    async with client_for(app) as client:
        first = await client.get("/api/posts", params={"page": 1})
        second = await client.get("/api/posts", params={"page": 1})
        other_page = await client.get("/api/posts", params={"page": 2})

    assert first.headers["X-Cache"] == "MISS"
    assert second.headers["X-Cache"] == "HIT"
    assert second.json() == first.json()
    assert other_page.headers["X-Cache"] == "MISS"
    assert app.state.calls["count"] == 2


@pytest.mark.asyncio
async def test_cache_bypassed_for_authenticated_requests_except_admin():
    cache = ResponseCache(MemoryCacheBackend(), default_ttl=60)
    app = build_app((ResponseCacheMiddleware, {"cache": cache, "paths": ["/api/posts", "/api/admin/"]}))
    headers = {"Authorization": "Bearer token"}

    async with client_for(app) as client:
        await client.get("/api/posts", headers=headers)
        personal = await client.get("/api/posts", headers=headers)
        await client.get("/api/admin/users", headers=headers)
        admin = await client.get("/api/admin/users", headers=headers)

    assert "X-Cache" not in personal.headers
    assert admin.headers["X-Cache"] == "HIT"


# --- Body sanitization ---


def test_strip_operator_keys():
    dirty = {"email": {"$gt": ""}, "profile.name": "x", "tags": [{"$where": "1"}, "ok"], "title": "Hi"}
    assert strip_operator_keys(dirty) == {"email": {}, "tags": [{}, "ok"], "title": "Hi"}


@pytest.mark.asyncio
async def test_sanitize_middleware_rewrites_json_bodies():
    app = build_app((BodySanitizeMiddleware, {}))

    async with client_for(app) as client:
        response = await client.post("/api/echo", json={"title": "Hi", "$set": {"role": "admin"}})

    assert response.json() == {"title": "Hi"}


@pytest.mark.asyncio
async def test_sanitize_middleware_leaves_invalid_json_alone():
    app = build_app((BodySanitizeMiddleware, {}))

    async with client_for(app) as client:
        response = await client.post(
            "/api/raw", content=b'{"$gt": ', headers={"content-type": "application/json"}
        )

    assert response.json() == {"body": '{"$gt": '}


# --- Rate limiting ---


def test_client_ip_prefers_forwarded_header():
    request = MagicMock()
    request.headers = {"x-forwarded-for": "203.0.113.9, 10.0.0.1"}
    assert client_ip(request) == "203.0.113.9"


@pytest.mark.asyncio
async def test_rate_limiter_counts_in_a_fixed_window():
    redis = AsyncMock()
    redis.incr.return_value = 1
    redis.ttl.return_value = 900
    manager = MagicMock()
    manager.get_redis = AsyncMock(return_value=redis)

    limiter = RateLimiter(manager, limit=100, period=900)
    assert await limiter.hit("1.2.3.4") == (True, 99, 900)
    redis.expire.assert_awaited_once_with("inkwell:ratelimit:1.2.3.4", 900)

    redis.incr.return_value = 101
    redis.expire.reset_mock()
    allowed, remaining, _ = await limiter.hit("1.2.3.4")
    assert (allowed, remaining) == (False, 0)
    redis.expire.assert_not_awaited()


@pytest.mark.asyncio
async def test_rate_limit_middleware_blocks_with_429():
    limiter = MagicMock(limit=100)
    limiter.hit = AsyncMock(side_effect=[(True, 0, 60), (False, 0, 60)])
    app = build_app((RateLimitMiddleware, {"limiter": limiter, "enabled": True}))

    async with client_for(app) as client:
        allowed = await client.get("/api/posts")
        blocked = await client.get("/api/posts")

    assert allowed.status_code == 200
    assert allowed.headers["RateLimit-Remaining"] == "0"
    assert blocked.status_code == 429
    assert blocked.json() == {"message": RATE_LIMIT_MESSAGE}
    assert blocked.headers["Retry-After"] == "60"


@pytest.mark.asyncio
async def test_rate_limit_fails_open_when_redis_is_down():
    limiter = MagicMock(limit=100)
    limiter.hit = AsyncMock(side_effect=RedisConnectionError("down"))
    app = build_app((RateLimitMiddleware, {"limiter": limiter, "enabled": True}))

    async with client_for(app) as client:
        response = await client.get("/api/posts")

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_rate_limit_disabled_skips_redis():
    limiter = MagicMock(limit=100)
    limiter.hit = AsyncMock()
    app = build_app((RateLimitMiddleware, {"limiter": limiter, "enabled": False}))

    async with client_for(app) as client:
        await client.get("/api/posts")

    limiter.hit.assert_not_awaited()


# --- Security headers ---


@pytest.mark.asyncio
async def test_security_headers():
    app = build_app((SecurityHeadersMiddleware, {}))

    async with client_for(app) as client:
        api = await client.get("/api/posts")
        media = await client.get("/media/avatar.png")

    assert api.headers["X-Content-Type-Options"] == "nosniff"
    assert api.headers["X-Frame-Options"] == "SAMEORIGIN"
    assert "default-src 'self'" in api.headers["Content-Security-Policy"]
    assert api.headers["Cross-Origin-Resource-Policy"] == "same-origin"
    assert "Strict-Transport-Security" not in api.headers
    assert media.headers["Cross-Origin-Resource-Policy"] == "cross-origin"
