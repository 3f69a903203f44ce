"""
Shared FastAPI dependencies: repository providers, path id parsing and pagination.

Repositories are resolved per request from the connected `db_manager`. Tests replace the
providers through `app.dependency_overrides`.
"""

from dataclasses import dataclass
from typing import Any, Callable

from bson import ObjectId
from fastapi import HTTPException, Query, status

from inkwell.config import settings
from inkwell.database import (
    COMMENTS_COLLECTION,
    POSTS_COLLECTION,
    USERS_COLLECTION,
    CommentRepository,
    PostRepository,
    UserRepository,
    db_manager,
)


def get_user_repository() -> UserRepository:
    return UserRepository(db_manager.get_collection(USERS_COLLECTION))


def get_post_repository() -> PostRepository:
    return PostRepository(db_manager.get_collection(POSTS_COLLECTION))


def get_comment_repository() -> CommentRepository:
    return CommentRepository(db_manager.get_collection(COMMENTS_COLLECTION))


def parse_object_id(value: Any) -> ObjectId:
    """Convert a path id to an ObjectId, answering 400 "Invalid ID format" otherwise."""
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid ID format")
    return ObjectId(value)


@dataclass
class Pagination:
    page: int
    limit: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def pagination_params(max_limit: int = None, default_limit: int = None) -> Callable[..., Pagination]:
    """
    Build a dependency reading `page` and `limit` query parameters.

    Out-of-range values fail validation and are reported as a 400 field error.
    """
    max_limit = max_limit or settings.MAX_PAGE_SIZE
    default_limit = default_limit or settings.DEFAULT_PAGE_SIZE

    def dependency(
        page: int = Query(1, ge=1, description="Page number, starting at 1"),
        limit: int = Query(default_limit, ge=1, le=max_limit, description="Items per page"),
    ) -> Pagination:
        return Pagination(page=page, limit=limit)

    return dependency


default_pagination = pagination_params()
admin_pagination = pagination_params(max_limit=settings.ADMIN_MAX_PAGE_SIZE)
