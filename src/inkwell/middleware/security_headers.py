"""
Security headers added to every response.

The Content-Security-Policy allows same-origin scripts, inline styles and Google Fonts, images
from any HTTPS source or data URIs (default avatars are SVG data URIs), and forbids plugins and
framing by other origins. HSTS is only sent in production.
"""

from typing import Callable, Dict

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from inkwell.config import settings

CONTENT_SECURITY_POLICY = "; ".join(
    [
        "default-src 'self'",
        "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com",
        "font-src 'self' https://fonts.gstatic.com",
        "img-src 'self' data: https:",
        "script-src 'self'",
        "base-uri 'self'",
        "form-action 'self'",
        "frame-ancestors 'self'",
        "object-src 'none'",
        "script-src-attr 'none'",
        "upgrade-insecure-requests",
    ]
)

# Interactive docs load their assets from a CDN
DOCS_PATHS = ("/docs", "/redoc")


def security_headers(path: str) -> Dict[str, str]:
    headers = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "SAMEORIGIN",
        "X-DNS-Prefetch-Control": "off",
        "X-Download-Options": "noopen",
        "X-Permitted-Cross-Domain-Policies": "none",
        "X-XSS-Protection": "0",
        "Referrer-Policy": "no-referrer",
        "Cross-Origin-Opener-Policy": "same-origin",
        "Origin-Agent-Cluster": "?1",
    }
    # Uploaded media is embedded by the frontend from another origin
    headers["Cross-Origin-Resource-Policy"] = "cross-origin" if path.startswith(settings.MEDIA_URL) else "same-origin"
    if not path.startswith(DOCS_PATHS):
        headers["Content-Security-Policy"] = CONTENT_SECURITY_POLICY
    if settings.is_production:
        headers["Strict-Transport-Security"] = "max-age=15552000; includeSubDomains"
    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for name, value in security_headers(request.url.path).items():
            response.headers.setdefault(name, value)
        return response
