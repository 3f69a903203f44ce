"""
# Logging Utilities

Structured logging helpers used by the application entry point and middleware stack:

- `RequestLoggingMiddleware`: one line per request with method, path, status, client and duration.
- `log_application_lifecycle`: startup/shutdown milestones with a details dict.
- `log_error_with_context`: error logging with traceback and operation context.
- `log_security_event`: authentication and authorization outcomes.
- `log_performance`: decorator timing sync or async callables.
"""

import asyncio
import functools
import time
from typing import Any, Callable, Dict, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from inkwell.managers.logging_manager import get_logger

logger = get_logger()
request_logger = get_logger(prefix="[REQUEST]")
lifecycle_logger = get_logger(prefix="[LIFECYCLE]")
security_logger = get_logger(prefix="[SECURITY]")
perf_logger = get_logger(prefix="[PERFORMANCE]")

SLOW_REQUEST_THRESHOLD = 1.0


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs every HTTP request with its outcome and duration."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        client_ip = request.client.host if request.client else "unknown"

        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.time() - start_time
            request_logger.error(
                "%s %s failed after %.3fs from %s: %s", request.method, request.url.path, duration, client_ip, e
            )
            raise

        duration = time.time() - start_time
        request_logger.info(
            "%s %s -> %d in %.3fs from %s",
            request.method,
            request.url.path,
            response.status_code,
            duration,
            client_ip,
        )
        if duration > SLOW_REQUEST_THRESHOLD:
            perf_logger.warning("Slow request: %s %s took %.3fs", request.method, request.url.path, duration)
        return response


def log_application_lifecycle(event: str, details: Optional[Dict[str, Any]] = None) -> None:
    """Log an application lifecycle milestone such as `startup_completed`."""
    lifecycle_logger.info("%s: %s", event, details or {})


def log_error_with_context(error: Exception, context: Optional[Dict[str, Any]] = None) -> None:
    """Log an exception with traceback and the operation context it occurred in."""
    logger.error("%s: %s | context=%s", type(error).__name__, error, context or {}, exc_info=error)


def log_security_event(
    event_type: str,
    user_id: Optional[str] = None,
    ip_address: Optional[str] = None,
    success: bool = True,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """Log an authentication/authorization outcome."""
    log = security_logger.info if success else security_logger.warning
    log(
        "event=%s user=%s ip=%s success=%s details=%s",
        event_type,
        user_id or "-",
        ip_address or "-",
        success,
        details or {},
    )


def log_performance(operation: str) -> Callable:
    """Decorator logging the duration of the wrapped function under `operation`."""

    def decorator(func: Callable) -> Callable:
        if asyncio.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    return await func(*args, **kwargs)
                finally:
                    perf_logger.debug("%s completed in %.3fs", operation, time.time() - start_time)

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                return func(*args, **kwargs)
            finally:
                perf_logger.debug("%s completed in %.3fs", operation, time.time() - start_time)

        return sync_wrapper

    return decorator
