"""
# Authentication Dependencies

FastAPI dependencies resolving the caller's identity and enforcing roles.

## Token Resolution

1. `Authorization: Bearer <jwt>` header.
2. Otherwise the `token` cookie set by signup and login.

## Failure Modes

| Situation | Response |
|-----------|----------|
| No token | 401 "Not authorized, no token" |
| Bad signature, malformed or expired token | 401 "Not authorized, token failed" |
| Token for a deleted user | 401 "User not found" |
| Role too low | 403 "Access denied. Admin only." / "Access denied. Authors and admins only." |

`get_optional_principal` runs the same resolution but yields `None` instead of failing, for public
endpoints that show more to owners and admins (draft posts).

**Usage:**
```python
@router.post("/")
async def create_post(principal: AuthenticatedPrincipal = Depends(require_author)):
    ...
```
"""

from typing import Optional

from bson.errors import InvalidId
from fastapi import Depends, HTTPException, Request, status
from jose import JWTError

from inkwell.config import settings
from inkwell.database import UserRepository
from inkwell.managers.logging_manager import get_logger
from inkwell.routes.auth.models import AuthenticatedPrincipal, is_admin, is_author
from inkwell.routes.auth.services import decode_access_token
from inkwell.routes.dependencies import get_user_repository
from inkwell.utils.logging_utils import log_security_event

logger = get_logger(prefix="[Security Dependencies]")


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=message)


def get_token_from_request(request: Request) -> Optional[str]:
    """Return the bearer token, falling back to the auth cookie."""
    authorization = request.headers.get("authorization", "")
    if authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
        if token:
            return token
    return request.cookies.get(settings.AUTH_COOKIE_NAME) or None


async def _resolve_principal(token: str, users: UserRepository) -> AuthenticatedPrincipal:
    try:
        payload = decode_access_token(token)
        user = await users.find_by_id(payload["id"])
    except (JWTError, InvalidId) as e:
        logger.debug("Token verification failed: %s", e)
        raise _unauthorized("Not authorized, token failed")

    if user is None:
        raise _unauthorized("User not found")
    return AuthenticatedPrincipal.from_document(user)


async def get_current_principal(
    request: Request, users: UserRepository = Depends(get_user_repository)
) -> AuthenticatedPrincipal:
    """
    Resolve the authenticated principal or fail with 401.

    Raises:
        HTTPException(401): Missing token, invalid token or deleted user.
    """
    token = get_token_from_request(request)
    if not token:
        raise _unauthorized("Not authorized, no token")
    return await _resolve_principal(token, users)


async def get_optional_principal(
    request: Request, users: UserRepository = Depends(get_user_repository)
) -> Optional[AuthenticatedPrincipal]:
    token = get_token_from_request(request)
    if not token:
        return None
    try:
        return await _resolve_principal(token, users)
    except HTTPException:
        return None


async def require_admin(
    request: Request, principal: AuthenticatedPrincipal = Depends(get_current_principal)
) -> AuthenticatedPrincipal:
    if not is_admin(principal):
        log_security_event(
            event_type="admin_access_denied",
            user_id=principal.username,
            ip_address=request.client.host if request.client else None,
            success=False,
            details={"path": request.url.path, "role": principal.role.value},
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied. Admin only.")
    return principal


async def require_author(principal: AuthenticatedPrincipal = Depends(get_current_principal)) -> AuthenticatedPrincipal:
    if not is_author(principal):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Access denied. Authors and admins only."
        )
    return principal
