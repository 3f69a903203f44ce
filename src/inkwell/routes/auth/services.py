"""
# Authentication Services

Password hashing, JWT issuance and the session cookie.

- **Passwords**: `bcrypt` with `BCRYPT_ROUNDS` (12) rounds.
- **Tokens**: HS256 JWTs signed with `SECRET_KEY` via `python-jose`, payload `{"id": <user id>, "exp"}`,
  valid for `JWT_EXPIRE_DAYS` (7) days.
- **Cookie**: the token is also set as an `httponly`, `samesite=strict` cookie named
  `AUTH_COOKIE_NAME` (`token`), `secure` in production, with the same lifetime as the token.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import bcrypt
from fastapi import Response
from jose import JWTError, jwt

from inkwell.config import settings
from inkwell.managers.logging_manager import get_logger

logger = get_logger(prefix="[Auth Services]")


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time bcrypt comparison; malformed hashes never match."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def _secret() -> str:
    return settings.SECRET_KEY.get_secret_value()


def create_access_token(user_id: Any) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=settings.JWT_EXPIRE_DAYS)
    return jwt.encode({"id": str(user_id), "exp": expire}, _secret(), algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verify the signature and expiry of a token.

    Raises:
        JWTError: If the token is malformed, tampered with or expired.
    """
    payload = jwt.decode(token, _secret(), algorithms=[settings.ALGORITHM])
    if not payload.get("id"):
        raise JWTError("Token has no subject")
    return payload


def set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=settings.JWT_EXPIRE_DAYS * 24 * 60 * 60,
        httponly=True,
        samesite="strict",
        secure=settings.is_production,
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.AUTH_COOKIE_NAME,
        httponly=True,
        samesite="strict",
        secure=settings.is_production,
    )
