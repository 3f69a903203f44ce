"""
# InkWell API Client

Async HTTP client for the InkWell API built on `httpx.AsyncClient`.

## Error Mapping

| Condition | Result |
|-----------|--------|
| 401 | stored token cleared, `SessionExpiredError` raised with the server's message |
| 429 | `RateLimitedError` |
| network failure / timeout | `ConnectivityError` |
| any other 4xx/5xx | `ApiError(status, message, errors)` from the `{message, errors}` envelope |
| request cancelled with `cancel()` / `cancel_all()` | the call returns `None` |

## Usage Example

```python
async with InkwellClient("http://localhost:5000") as client:
    await client.login("ada@example.com", "secret1")
    page = await client.list_posts(category="Technology", page=2)
    await client.like_post(page["posts"][0]["id"])
```

In-flight requests are keyed `"<METHOD>:<path>"`, so `client.cancel("/api/search")` aborts every
pending search request.
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import httpx

from inkwell.config import settings
from inkwell.managers.logging_manager import get_logger

logger = get_logger(prefix="[CLIENT]")

DEFAULT_TIMEOUT_SECONDS = 60.0


class ApiError(Exception):
    """Error response from the API, carrying the server's message and field errors."""

    def __init__(self, status_code: int, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.errors = errors or []


class SessionExpiredError(ApiError):
    def __init__(self, message: str = "Session expired. Please log in again."):
        super().__init__(401, message)


class RateLimitedError(ApiError):
    def __init__(self, message: str = "Too many requests. Please wait a moment and try again."):
        super().__init__(429, message)


class ConnectivityError(Exception):
    """The API could not be reached."""


class TokenStore:
    """In-memory holder for the bearer token."""

    def __init__(self, token: Optional[str] = None):
        self._token = token

    def get(self) -> Optional[str]:
        return self._token

    def set(self, token: Optional[str]) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


def _envelope(response: httpx.Response) -> Tuple[Optional[str], Optional[List[Dict[str, Any]]]]:
    """The `{message, errors}` pair of an error body, or `(None, None)` when there is none."""
    try:
        body = response.json()
    except ValueError:
        return None, None
    if not isinstance(body, dict):
        return None, None
    return body.get("message") or None, body.get("errors")


def _error_from_response(response: httpx.Response) -> ApiError:
    message, errors = _envelope(response)
    return ApiError(response.status_code, message or "An unexpected error occurred. Please try again.", errors)


def _params(**values: Any) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


class InkwellClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token_store: Optional[TokenStore] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url or f"http://{settings.HOST}:{settings.PORT}"
        self.tokens = token_store or TokenStore()
        self._http = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)
        self._inflight: Dict[str, asyncio.Task] = {}
        self._cancelled: set = set()

    async def __aenter__(self) -> "InkwellClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        self.cancel_all()
        await self._http.aclose()

    # --- Cancellation ---

    def cancel(self, pattern: str) -> int:
        """Cancel in-flight requests whose `METHOD:path` key contains `pattern`."""
        cancelled = 0
        for key, task in list(self._inflight.items()):
            if pattern in key and not task.done():
                self._cancelled.add(task)
                task.cancel()
                cancelled += 1
                logger.debug("Cancelled request %s", key)
        return cancelled

    def cancel_all(self) -> int:
        return self.cancel("")

    # --- Core request ---

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        files: Any = None,
    ) -> Optional[Any]:
        """
        Send a request and return the decoded JSON body.

        Returns:
            The JSON body, or None when the request was cancelled through `cancel()`.

        Raises:
            SessionExpiredError: On 401, after clearing the stored token.
            RateLimitedError: On 429.
            ConnectivityError: When the server cannot be reached or the request times out.
            ApiError: On any other error status.
        """
        headers = {}
        token = self.tokens.get()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        key = f"{method.upper()}:{path}"
        task = asyncio.ensure_future(
            self._http.request(method, path, params=params, json=json, files=files, headers=headers)
        )
        self._inflight[key] = task
        try:
            response = await task
        except asyncio.CancelledError:
            if task in self._cancelled:
                logger.info("Request was aborted: %s", key)
                return None
            raise
        except httpx.TransportError as e:
            logger.warning("Network error on %s: %s", key, e)
            raise ConnectivityError("Network error. Please check your connection and try again.") from e
        finally:
            self._cancelled.discard(task)
            if self._inflight.get(key) is task:
                del self._inflight[key]

        if response.status_code == 401:
            self.tokens.clear()
            message, _ = _envelope(response)
            raise SessionExpiredError(message) if message else SessionExpiredError()
        if response.status_code == 429:
            raise RateLimitedError()
        if response.is_error:
            raise _error_from_response(response)
        if not response.content:
            return None
        return response.json()

    # --- Auth ---

    async def signup(self, username: str, email: str, password: str) -> Optional[Dict[str, Any]]:
        data = await self.request(
            "POST", "/api/auth/signup", json={"username": username, "email": email, "password": password}
        )
        if data and data.get("token"):
            self.tokens.set(data["token"])
        return data

    async def login(self, email: str, password: str) -> Optional[Dict[str, Any]]:
        data = await self.request("POST", "/api/auth/login", json={"email": email, "password": password})
        if data and data.get("token"):
            self.tokens.set(data["token"])
        return data

    async def logout(self) -> Optional[Dict[str, Any]]:
        try:
            return await self.request("POST", "/api/auth/logout")
        finally:
            self.tokens.clear()

    async def refresh(self) -> Optional[Dict[str, Any]]:
        data = await self.request("POST", "/api/auth/refresh")
        if data and data.get("token"):
            self.tokens.set(data["token"])
        return data

    async def profile(self) -> Optional[Dict[str, Any]]:
        return await self.request("GET", "/api/auth/profile")

    async def change_password(self, current_password: str, new_password: str) -> Optional[Dict[str, Any]]:
        return await self.request(
            "PUT",
            "/api/auth/change-password",
            json={"currentPassword": current_password, "newPassword": new_password},
        )

    # --- Posts ---

    async def list_posts(
        self,
        page: int = 1,
        limit: Optional[int] = None,
        category: Optional[str] = None,
        tag: Optional[str] = None,
        author: Optional[str] = None,
        sort: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        params = _params(page=page, limit=limit, category=category, tag=tag, author=author, sort=sort)
        return await self.request("GET", "/api/posts", params=params)

    async def get_post(self, slug: str) -> Optional[Dict[str, Any]]:
        return await self.request("GET", f"/api/posts/{slug}")

    async def get_post_by_id(self, post_id: str) -> Optional[Dict[str, Any]]:
        return await self.request("GET", f"/api/posts/id/{post_id}")

    async def my_published_posts(self, page: int = 1) -> Optional[Dict[str, Any]]:
        return await self.request("GET", "/api/posts/user/published", params={"page": page})

    async def my_drafts(self, page: int = 1) -> Optional[Dict[str, Any]]:
        return await self.request("GET", "/api/posts/user/drafts", params={"page": page})

    async def create_post(self, post: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self.request("POST", "/api/posts", json=post)

    async def update_post(self, post_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self.request("PUT", f"/api/posts/{post_id}", json=changes)

    async def delete_post(self, post_id: str) -> Optional[Dict[str, Any]]:
        return await self.request("DELETE", f"/api/posts/{post_id}")

    async def like_post(self, post_id: str) -> Optional[Dict[str, Any]]:
        return await self.request("POST", f"/api/posts/{post_id}/like")

    async def bookmark_post(self, post_id: str) -> Optional[Dict[str, Any]]:
        return await self.request("POST", f"/api/posts/{post_id}/bookmark")

    # --- Comments ---

    async def post_comments(self, post_id: str, page: int = 1) -> Optional[Dict[str, Any]]:
        return await self.request("GET", f"/api/posts/{post_id}/comments", params={"page": page})

    async def create_comment(
        self, post_id: str, content: str, parent_comment_id: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        payload = _params(postId=post_id, content=content, parentCommentId=parent_comment_id)
        return await self.request("POST", "/api/comments", json=payload)

    async def update_comment(self, comment_id: str, content: str) -> Optional[Dict[str, Any]]:
        return await self.request("PUT", f"/api/comments/{comment_id}", json={"content": content})

    async def delete_comment(self, comment_id: str) -> Optional[Dict[str, Any]]:
        return await self.request("DELETE", f"/api/comments/{comment_id}")

    async def like_comment(self, comment_id: str) -> Optional[Dict[str, Any]]:
        return await self.request("POST", f"/api/comments/{comment_id}/like")

    async def comment_replies(self, comment_id: str, page: int = 1) -> Optional[Dict[str, Any]]:
        return await self.request("GET", f"/api/comments/{comment_id}/replies", params={"page": page})

    # --- Search ---

    async def search_posts(
        self,
        q: str = "",
        page: int = 1,
        category: Optional[str] = None,
        tag: Optional[str] = None,
        author: Optional[str] = None,
        sort: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        params = _params(q=q, page=page, category=category, tag=tag, author=author, sort=sort)
        return await self.request("GET", "/api/search/posts", params=params)

    async def search_users(self, query: str, page: int = 1) -> Optional[Dict[str, Any]]:
        return await self.request("GET", "/api/search/users", params={"query": query, "page": page})

    async def popular_tags(self, query: Optional[str] = None, limit: int = 20) -> Optional[Dict[str, Any]]:
        return await self.request("GET", "/api/search/tags", params=_params(query=query, limit=limit))

    async def categories(self) -> Optional[Dict[str, Any]]:
        return await self.request("GET", "/api/search/categories")

    async def global_search(self, query: str, limit: int = 10) -> Optional[Dict[str, Any]]:
        return await self.request("GET", "/api/search/global", params={"query": query, "limit": limit})

    async def suggestions(self, query: str, type: str = "posts") -> Optional[Dict[str, Any]]:
        return await self.request("GET", "/api/search/suggestions", params={"query": query, "type": type})

    async def health(self) -> Optional[Dict[str, Any]]:
        return await self.request("GET", "/api/health")
