"""
# InkWell API Application

Entry point assembling the FastAPI application: lifespan, middleware stack, exception handlers,
routers, static media and Prometheus metrics.

## Architecture

```
client ──▶ CORS ──▶ GZip ──▶ security headers ──▶ rate limit ──▶ request logging
       ──▶ body sanitization ──▶ response cache ──▶ router ──▶ repositories ──▶ MongoDB
```

## Lifespan

**Startup:** connect to MongoDB (with retries) and ensure indexes.
**Shutdown:** wait briefly for pending view increments, close Redis, disconnect MongoDB.

## Error Envelope

Every error is answered as `{"message": ..., "errors"?: [...]}`:

| Source | Status | Body |
|--------|--------|------|
| `HTTPException` | its status | `{"message": detail}` (dict details passed through) |
| Request validation | 400 | `{"message": "Validation failed", "errors": [{field, message, value}]}` |
| Unknown route | 404 | `{"message": "Route not found"}` |
| Unhandled exception | 500 | `{"message": "Something went wrong!"}` plus `stack` outside production |

## Running

```bash
uvicorn inkwell.main:app --host 0.0.0.0 --port 5000
```
"""

from contextlib import asynccontextmanager
import time
import traceback
from typing import Any, Dict, List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.staticfiles import StaticFiles
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
import uvicorn

from inkwell import __version__
from inkwell.config import settings
from inkwell.database import db_manager
from inkwell.managers.logging_manager import get_logger
from inkwell.managers.redis_manager import redis_manager
from inkwell.middleware import (
    BodySanitizeMiddleware,
    RateLimitMiddleware,
    ResponseCacheMiddleware,
    SecurityHeadersMiddleware,
)
from inkwell.models.common_models import ErrorResponse
from inkwell.routes.admin import router as admin_router
from inkwell.routes.auth.routes import router as auth_router
from inkwell.routes.comments import router as comments_router
from inkwell.routes.health import router as health_router
from inkwell.routes.posts import router as posts_router
from inkwell.routes.search import router as search_router
from inkwell.routes.users import router as users_router
from inkwell.services.view_counter import view_counter
from inkwell.utils.logging_utils import RequestLoggingMiddleware, log_application_lifecycle, log_error_with_context

logger = get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Open the database before serving requests and release resources on shutdown.

    Raises:
        Exception: Startup fails when MongoDB cannot be reached after all retries.
    """
    startup_start_time = time.time()
    log_application_lifecycle(
        "startup_initiated",
        {
            "app_name": "InkWell API",
            "version": __version__,
            "environment": settings.ENVIRONMENT,
            "debug_mode": settings.DEBUG,
        },
    )

    try:
        db_connect_start = time.time()
        await db_manager.connect()
        log_application_lifecycle(
            "database_connected",
            {
                "connection_duration": f"{time.time() - db_connect_start:.3f}s",
                "database_name": settings.MONGODB_DATABASE,
                "connection_url": settings.MONGODB_URL.split("@")[-1],
            },
        )

        indexes_start = time.time()
        await db_manager.create_indexes()
        log_application_lifecycle("database_indexes_ready", {"indexes_duration": f"{time.time() - indexes_start:.3f}s"})
    except Exception as e:
        log_error_with_context(e, {"operation": "application_startup"})
        raise

    log_application_lifecycle(
        "startup_completed",
        {
            "startup_duration": f"{time.time() - startup_start_time:.3f}s",
            "rate_limiting": settings.rate_limit_active,
            "cache_backend": settings.CACHE_BACKEND,
        },
    )

    yield

    shutdown_start_time = time.time()
    log_application_lifecycle("shutdown_initiated", {"pending_view_increments": view_counter.pending})
    try:
        await view_counter.drain()
        await redis_manager.close()
        await db_manager.disconnect()
    except Exception as e:
        log_error_with_context(e, {"operation": "application_shutdown"})
    log_application_lifecycle("shutdown_completed", {"shutdown_duration": f"{time.time() - shutdown_start_time:.3f}s"})


app = FastAPI(
    title="InkWell API",
    description="Blogging platform API: accounts, posts, comments, likes, bookmarks, search and moderation.",
    version=__version__,
    lifespan=lifespan,
    responses={
        400: {"model": ErrorResponse, "description": "Validation failed or bad input"},
        401: {"model": ErrorResponse, "description": "Missing, invalid or expired token"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "Unhandled server error"},
    },
)


# --- Exception handlers ---


def _field_name(location: List[Any]) -> str:
    parts = [str(part) for part in location if part not in ("body", "query", "path")]
    return ".".join(parts) or str(location[-1] if location else "")


def validation_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
    """Flatten pydantic errors into `{field, message, value}` entries."""
    errors = []
    for error in exc.errors():
        message = error.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        value = error.get("input")
        errors.append(
            {
                "field": _field_name(list(error.get("loc", []))),
                "message": message,
                "value": value if isinstance(value, (str, int, float, bool)) or value is None else None,
            }
        )
    return errors


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc.detail, dict) and "message" in exc.detail:
        content = exc.detail
    elif exc.status_code == 404 and exc.detail == "Not Found":
        content = {"message": "Route not found"}
    else:
        content = {"message": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"message": "Validation failed", "errors": validation_errors(exc)})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    log_error_with_context(exc, {"operation": "request", "method": request.method, "path": request.url.path})
    content: Dict[str, Any] = {"message": "Something went wrong!"}
    if not settings.is_production:
        content["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(status_code=500, content=content)


# --- Middleware (last added runs first) ---

app.add_middleware(ResponseCacheMiddleware)
app.add_middleware(BodySanitizeMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=1024)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)
log_application_lifecycle(
    "middleware_configured",
    {
        "middleware": [
            "CORSMiddleware",
            "GZipMiddleware",
            "SecurityHeadersMiddleware",
            "RateLimitMiddleware",
            "RequestLoggingMiddleware",
            "BodySanitizeMiddleware",
            "ResponseCacheMiddleware",
        ],
        "cors_origins": settings.cors_origins_list,
    },
)


# --- Routers ---

routers_config = [
    ("auth", auth_router, "Signup, login and session endpoints"),
    ("posts", posts_router, "Post publishing, reading, likes and bookmarks"),
    ("comments", comments_router, "Threaded comments"),
    ("users", users_router, "Profiles, bookmarks, stats and avatars"),
    ("search", search_router, "Search and discovery"),
    ("admin", admin_router, "Moderation dashboard"),
    ("health", health_router, "Health check"),
]

included_routers = []
for router_name, router, description in routers_config:
    try:
        app.include_router(router)
        included_routers.append({"name": router_name, "description": description})
        logger.info("Successfully included %s router: %s", router_name, description)
    except Exception as e:
        log_error_with_context(
            e, {"operation": "router_inclusion", "router_name": router_name, "description": description}
        )
        logger.error("Failed to include %s router: %s", router_name, e)

log_application_lifecycle(
    "routers_configured",
    {"total_routers": len(routers_config), "included_routers": len(included_routers), "routers": included_routers},
)

app.mount(settings.MEDIA_URL, StaticFiles(directory=settings.MEDIA_ROOT, check_dir=False), name="media")


# --- Prometheus metrics ---

try:
    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_respect_env_var=False,
        should_instrument_requests_inprogress=True,
    )
    instrumentator.instrument(app).expose(app, include_in_schema=False, endpoint="/metrics")
    log_application_lifecycle("prometheus_configured", {"metrics_endpoint": "/metrics"})
except Exception as e:
    log_error_with_context(e, {"operation": "prometheus_setup"})
    logger.error("Failed to configure Prometheus metrics: %s", e)


def run() -> None:
    """Console entry point serving the app with uvicorn."""
    uvicorn.run("inkwell.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG, log_level="info")


if __name__ == "__main__":
    run()
