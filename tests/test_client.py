import asyncio

import httpx
import pytest

from inkwell.client import (
    ApiError,
    ConnectivityError,
    InkwellClient,
    RateLimitedError,
    SessionExpiredError,
    TokenStore,
)


def client_with(handler, token=None):
    return InkwellClient(
        "http://inkwell.test", token_store=TokenStore(token), transport=httpx.MockTransport(handler)
    )


@pytest.mark.asyncio
async def test_login_stores_token_and_sends_it():
    seen = []

    def handler(request):
        seen.append(request.headers.get("authorization"))
        if request.url.path == "/api/auth/login":
            return httpx.Response(200, json={"message": "Login successful", "token": "abc", "user": {}})
        return httpx.Response(200, json={"posts": [], "pagination": {}})

    async with client_with(handler) as client:
        await client.login("ada@example.com", "secret1")
        await client.list_posts(category="Technology")

    assert client.tokens.get() == "abc"
    assert seen == [None, "Bearer abc"]


@pytest.mark.asyncio
async def test_unauthorized_clears_token():
    def handler(request):
        return httpx.Response(401, json={"message": "Not authorized, token failed"})

    async with client_with(handler, token="stale") as client:
        with pytest.raises(SessionExpiredError):
            await client.profile()

    assert client.tokens.get() is None


@pytest.mark.asyncio
async def test_failed_login_keeps_server_message():
    def handler(request):
        return httpx.Response(401, json={"message": "Invalid credentials"})

    async with client_with(handler) as client:
        with pytest.raises(SessionExpiredError) as exc_info:
            await client.login("ada@example.com", "wrong-password")

    assert exc_info.value.message == "Invalid credentials"
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_unauthorized_without_body_uses_default_message():
    def handler(request):
        return httpx.Response(401, text="Unauthorized")

    async with client_with(handler, token="stale") as client:
        with pytest.raises(SessionExpiredError) as exc_info:
            await client.profile()

    assert exc_info.value.message == "Session expired. Please log in again."


@pytest.mark.asyncio
async def test_rate_limited():
    def handler(request):
        return httpx.Response(429, json={"message": "Too many requests from this IP, please try again later."})

    async with client_with(handler) as client:
        with pytest.raises(RateLimitedError) as exc_info:
            await client.list_posts()

    assert exc_info.value.status_code == 429


@pytest.mark.asyncio
async def test_error_envelope_is_exposed():
    def handler(request):
        return httpx.Response(
            400,
            json={"message": "Validation failed", "errors": [{"field": "title", "message": "Required", "value": ""}]},
        )

    async with client_with(handler) as client:
        with pytest.raises(ApiError) as exc_info:
            await client.create_post({"title": ""})

    error = exc_info.value
    assert error.status_code == 400
    assert error.message == "Validation failed"
    assert error.errors[0]["field"] == "title"


@pytest.mark.asyncio
async def test_non_json_error_gets_generic_message():
    def handler(request):
        return httpx.Response(502, text="Bad gateway")

    async with client_with(handler) as client:
        with pytest.raises(ApiError) as exc_info:
            await client.health()

    assert exc_info.value.message == "An unexpected error occurred. Please try again."


@pytest.mark.asyncio
async def test_network_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with client_with(handler) as client:
        with pytest.raises(ConnectivityError):
            await client.categories()


@pytest.mark.asyncio
async def test_cancelled_request_returns_none():
    started = asyncio.Event()

    async def handler(request):
        started.set()
        await asyncio.sleep(10)
        return httpx.Response(200, json={})

    async with client_with(handler) as client:
        pending = asyncio.ensure_future(client.global_search("python"))
        await started.wait()
        assert client.cancel("/api/search") == 1
        assert await pending is None


@pytest.mark.asyncio
async def test_cancel_ignores_other_requests():
    async def handler(request):
        return httpx.Response(200, json={"suggestions": []})

    async with client_with(handler) as client:
        assert client.cancel("/api/search") == 0
        assert await client.suggestions("py") == {"suggestions": []}


@pytest.mark.asyncio
async def test_comment_payload_uses_camel_case():
    bodies = []

    def handler(request):
        bodies.append(request.content)
        return httpx.Response(201, json={"message": "Comment created successfully", "comment": {}})

    async with client_with(handler, token="abc") as client:
        await client.create_comment("a" * 24, "Nice", parent_comment_id="b" * 24)

    assert b'"postId"' in bodies[0]
    assert b'"parentCommentId"' in bodies[0]
