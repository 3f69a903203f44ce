"""
# Authentication Models

Request, response and principal models for signup, login and session management, plus the pure
authorization predicates shared by every router.

## Principal

Handlers receive an `AuthenticatedPrincipal` (`id`, `username`, `email`, `role`) rather than the raw
user document. Authorization decisions are plain functions of the principal:

| Predicate | True when |
|-----------|-----------|
| `is_admin(p)` | role is `admin` |
| `is_author(p)` | role is `admin` or `author` |
| `is_owner_or_admin(p, owner_id)` | `p` owns the resource or is an admin |
| `can_view_post(post, p)` | post is published, or `p` is its author or an admin |

## Module Attributes

Attributes:
    PASSWORD_MIN_LENGTH (int): Minimum password length (6).
    USERNAME_MIN_LENGTH (int): Minimum username length (3).
    USERNAME_MAX_LENGTH (int): Maximum username length (30).
    USERNAME_REGEX (str): Allowed username characters.
"""

import re
from typing import Any, Dict, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from inkwell.config import settings
from inkwell.managers.logging_manager import get_logger
from inkwell.models.common_models import CamelModel
from inkwell.models.user_models import UserResponse, UserRole

logger = get_logger(prefix="[Auth Models]")

PASSWORD_MIN_LENGTH: int = 6
USERNAME_MIN_LENGTH: int = 3
USERNAME_MAX_LENGTH: int = 30
USERNAME_REGEX: str = r"^[a-zA-Z0-9_-]+$"


def validate_password_strength(password: str) -> Optional[str]:
    """
    Check a password against the configured policy.

    The minimum length always applies. With `PASSWORD_REQUIRE_COMPLEXITY` enabled the password must
    also contain a lowercase letter, an uppercase letter and a digit.

    Returns:
        Optional[str]: The failure reason, or `None` when the password is acceptable.
    """
    if len(password) < PASSWORD_MIN_LENGTH:
        return f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"
    if settings.PASSWORD_REQUIRE_COMPLEXITY:
        if not re.search(r"[a-z]", password) or not re.search(r"[A-Z]", password) or not re.search(r"\d", password):
            logger.warning("Password validation failed: complexity requirements not met")
            return "Password must contain at least one lowercase letter, one uppercase letter, and one number"
    return None


class SignupRequest(BaseModel):
    """
    Registration payload.

    Usernames are 3-30 characters of letters, digits, `_` and `-`. Emails are lower-cased.
    """

    username: str = Field(
        ...,
        min_length=USERNAME_MIN_LENGTH,
        max_length=USERNAME_MAX_LENGTH,
        pattern=USERNAME_REGEX,
        description="Unique username",
    )
    email: EmailStr = Field(..., description="Email address, stored lower-case")
    password: str = Field(..., description="Plain-text password, hashed with bcrypt before storage")

    model_config = {
        "json_schema_extra": {"example": {"username": "alice", "email": "alice@example.com", "password": "secret1"}}
    }

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        return v.strip()

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        reason = validate_password_strength(v)
        if reason:
            raise ValueError(reason)
        return v


class LoginRequest(BaseModel):
    email: EmailStr = Field(..., description="Registered email address")
    password: str = Field(..., min_length=1, description="Password")

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.strip().lower()


class PasswordChangeRequest(CamelModel):
    """Both passwords are required; the handler reports missing or short values with a 400."""

    current_password: Optional[str] = Field(None, description="Current password for verification")
    new_password: Optional[str] = Field(None, description="Replacement password")


class AuthResponse(BaseModel):
    message: str
    token: str
    user: UserResponse


class AuthenticatedPrincipal(BaseModel):
    """Identity attached to an authenticated request."""

    id: str
    username: str
    email: str
    role: UserRole

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "AuthenticatedPrincipal":
        return cls(
            id=str(doc["_id"]),
            username=doc.get("username", ""),
            email=doc.get("email", ""),
            role=doc.get("role", UserRole.READER.value),
        )


def is_admin(principal: Optional[AuthenticatedPrincipal]) -> bool:
    return principal is not None and principal.role == UserRole.ADMIN


def is_author(principal: Optional[AuthenticatedPrincipal]) -> bool:
    return principal is not None and principal.role in (UserRole.ADMIN, UserRole.AUTHOR)


def is_owner_or_admin(principal: Optional[AuthenticatedPrincipal], owner_id: Any) -> bool:
    if principal is None:
        return False
    return is_admin(principal) or (owner_id is not None and principal.id == str(owner_id))


def can_view_post(post: Dict[str, Any], principal: Optional[AuthenticatedPrincipal]) -> bool:
    if post.get("is_published"):
        return True
    return is_owner_or_admin(principal, post.get("author"))
