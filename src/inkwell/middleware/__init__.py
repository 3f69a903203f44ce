"""
HTTP middleware stack.

Registered in `inkwell.main` (outermost last): response cache, body sanitization, request
logging, rate limiting, security headers, then CORS.
"""

from inkwell.middleware.rate_limit import RateLimitMiddleware
from inkwell.middleware.response_cache import ResponseCacheMiddleware
from inkwell.middleware.sanitize import BodySanitizeMiddleware
from inkwell.middleware.security_headers import SecurityHeadersMiddleware

__all__ = [
    "BodySanitizeMiddleware",
    "RateLimitMiddleware",
    "ResponseCacheMiddleware",
    "SecurityHeadersMiddleware",
]
