"""
Request body sanitization against MongoDB operator injection.

JSON object keys that start with `$` or contain `.` are removed, recursively, before the body
reaches a route. Non-JSON bodies and invalid JSON pass through untouched so the normal validation
errors still apply.

Implemented as a plain ASGI middleware because the body has to be rewritten before FastAPI reads it.
"""

import json
from typing import Any, List

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from inkwell.managers.logging_manager import get_logger

logger = get_logger(prefix="[SANITIZE]")


def strip_operator_keys(value: Any) -> Any:
    """Return `value` without dict keys starting with `$` or containing `.`."""
    if isinstance(value, dict):
        return {
            key: strip_operator_keys(item)
            for key, item in value.items()
            if not (isinstance(key, str) and (key.startswith("$") or "." in key))
        }
    if isinstance(value, list):
        return [strip_operator_keys(item) for item in value]
    return value


def _is_json(scope: Scope) -> bool:
    for name, header_value in scope.get("headers", []):
        if name == b"content-type":
            return b"json" in header_value.lower()
    return False


class BodySanitizeMiddleware:
    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("method") not in ("POST", "PUT", "PATCH") or not _is_json(scope):
            await self.app(scope, receive, send)
            return

        chunks: List[bytes] = []
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                await self.app(scope, receive, send)
                return
            chunks.append(message.get("body", b""))
            more_body = message.get("more_body", False)
        body = b"".join(chunks)

        try:
            parsed = json.loads(body) if body else None
        except ValueError:
            parsed = None
        else:
            cleaned = strip_operator_keys(parsed)
            if cleaned != parsed:
                logger.warning("Removed operator keys from %s %s body", scope["method"], scope.get("path"))
                body = json.dumps(cleaned).encode("utf-8")
                headers = [(k, v) for k, v in scope.get("headers", []) if k != b"content-length"]
                headers.append((b"content-length", str(len(body)).encode("ascii")))
                scope = dict(scope, headers=headers)

        sent = False

        async def replay() -> Message:
            nonlocal sent
            if sent:
                return await receive()
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}

        await self.app(scope, replay, send)
