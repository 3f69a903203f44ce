"""
# Search Routes

Discovery endpoints under `/api/search`. All are public and their responses are cached by
`ResponseCacheMiddleware`.

## API Endpoints

- `GET /api/search/posts` - Full-text post search (`q`) with category, tag, author and sort filters
- `GET /api/search/users` - Username/bio substring search (`query`, at least 2 characters)
- `GET /api/search/tags` - Most used tags, optionally filtered by `query`
- `GET /api/search/categories` - Published post counts per category
- `GET /api/search/global` - Posts and users matching `query`, half of `limit` each
- `GET /api/search/suggestions` - Up to 5 suggestions per type for type-ahead

## Matching

`/posts` uses the `posts_text` index and ranks by text score. `/global`, `/users` and
`/suggestions` use escaped, case-insensitive substring matching instead, so partial words match.
Tag counting scans at most `TAG_SCAN_LIMIT` of the most recent published posts.
"""

import math
from enum import Enum
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from inkwell.config import settings
from inkwell.database import CommentRepository, PostRepository, UserRepository
from inkwell.managers.logging_manager import get_logger
from inkwell.models.blog_models import (
    CategoriesResponse,
    CategoryCount,
    PostCategory,
    PostSort,
    Suggestion,
    SuggestionsResponse,
    TagCount,
    TagsResponse,
)
from inkwell.models.common_models import build_pagination
from inkwell.models.user_models import UserResponse
from inkwell.routes.dependencies import (
    Pagination,
    default_pagination,
    get_comment_repository,
    get_post_repository,
    get_user_repository,
)
from inkwell.routes.presenters import present_posts

logger = get_logger(prefix="[Search Routes]")

router = APIRouter(prefix="/api/search", tags=["Search"])

MIN_QUERY_LENGTH = 2
SUGGESTIONS_PER_TYPE = 5


class SuggestionType(str, Enum):
    POSTS = "posts"
    USERS = "users"
    TAGS = "tags"
    ALL = "all"


def _require_query(query: Optional[str]) -> str:
    query = (query or "").strip()
    if len(query) < MIN_QUERY_LENGTH:
        raise HTTPException(status_code=400, detail="Search query must be at least 2 characters long")
    return query


@router.get("/posts")
async def search_posts(
    q: str = Query("", max_length=100, description="Full-text query"),
    category: Optional[PostCategory] = Query(None),
    tag: Optional[str] = Query(None),
    author: Optional[str] = Query(None, description="Author username"),
    sort: PostSort = Query(PostSort.LATEST),
    paging: Pagination = Depends(default_pagination),
    posts: PostRepository = Depends(get_post_repository),
    users: UserRepository = Depends(get_user_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    try:
        filters: Dict[str, Any] = {"is_published": True}
        if category:
            filters["category"] = category.value
        if tag:
            filters["tags"] = tag.strip().lower()
        if author:
            author_doc = await users.find_by_username(author)
            if author_doc is None:
                return {"posts": [], "pagination": build_pagination(paging.page, paging.limit, 0, "Posts")}
            filters["author"] = author_doc["_id"]

        if q.strip():
            docs, total = await posts.text_search(q.strip(), filters, sort.value, paging.skip, paging.limit)
        else:
            docs, total = await posts.list_posts(filters, sort.value, paging.skip, paging.limit)

        return {
            "posts": await present_posts(docs, users, comments),
            "pagination": build_pagination(paging.page, paging.limit, total, "Posts"),
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Post search failed: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail="Server error")


@router.get("/users")
async def search_users(
    query: Optional[str] = Query(None, max_length=100),
    paging: Pagination = Depends(default_pagination),
    users: UserRepository = Depends(get_user_repository),
):
    query = _require_query(query)
    docs, total = await users.search(query, paging.skip, paging.limit)
    return {
        "users": [UserResponse.from_document(doc) for doc in docs],
        "pagination": build_pagination(paging.page, paging.limit, total, "Users"),
    }


@router.get("/tags", response_model=TagsResponse)
async def popular_tags(
    query: Optional[str] = Query(None, max_length=100),
    limit: int = Query(20, ge=1, le=100),
    posts: PostRepository = Depends(get_post_repository),
):
    """Most used tags over recent published posts, most used first."""
    counts = await posts.tag_counts((query or "").strip() or None, limit, settings.TAG_SCAN_LIMIT)
    return TagsResponse(tags=[TagCount(tag=tag, count=count) for tag, count in counts])


@router.get("/categories", response_model=CategoriesResponse)
async def category_counts(posts: PostRepository = Depends(get_post_repository)):
    rows = await posts.category_counts()
    return CategoriesResponse(
        categories=[CategoryCount(category=row["_id"], count=row["count"]) for row in rows if row.get("_id")]
    )


@router.get("/global")
async def global_search(
    query: Optional[str] = Query(None, max_length=100),
    limit: int = Query(10, ge=1, le=50),
    posts: PostRepository = Depends(get_post_repository),
    users: UserRepository = Depends(get_user_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    """
    Search posts and users at once.

    Each side returns at most `ceil(limit / 2)` results.
    """
    query = _require_query(query)
    per_side = math.ceil(limit / 2)
    try:
        post_docs = await posts.regex_search(query, per_side)
        user_docs, _ = await users.search(query, 0, per_side)

        post_results = await present_posts(post_docs, users, comments)
        user_results = [UserResponse.from_document(doc) for doc in user_docs]
        return {
            "query": query,
            "results": {"posts": post_results, "users": user_results},
            "totalResults": len(post_results) + len(user_results),
        }
    except Exception as e:
        logger.error("Global search failed: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail="Server error")


@router.get("/suggestions", response_model=SuggestionsResponse, response_model_exclude_none=True)
async def search_suggestions(
    query: Optional[str] = Query(None, max_length=100),
    type: SuggestionType = Query(SuggestionType.POSTS),
    posts: PostRepository = Depends(get_post_repository),
    users: UserRepository = Depends(get_user_repository),
):
    query = (query or "").strip()
    if len(query) < MIN_QUERY_LENGTH:
        return SuggestionsResponse(suggestions=[])

    suggestions: List[Suggestion] = []
    if type in (SuggestionType.POSTS, SuggestionType.ALL):
        for doc in await posts.title_suggestions(query, SUGGESTIONS_PER_TYPE):
            suggestions.append(Suggestion(type="post", title=doc["title"], slug=doc["slug"]))

    if type in (SuggestionType.USERS, SuggestionType.ALL):
        user_docs, _ = await users.search(query, 0, SUGGESTIONS_PER_TYPE)
        for doc in user_docs:
            suggestions.append(Suggestion(type="user", title=doc["username"], username=doc["username"]))

    if type in (SuggestionType.TAGS, SuggestionType.ALL):
        for tag, _ in await posts.tag_counts(query, SUGGESTIONS_PER_TYPE, settings.TAG_SCAN_LIMIT):
            suggestions.append(Suggestion(type="tag", title=tag, tag=tag))

    return SuggestionsResponse(suggestions=suggestions)
