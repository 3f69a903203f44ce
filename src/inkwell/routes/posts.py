"""
# Post Routes

Post publishing, reading and engagement endpoints under `/api/posts`.

## API Endpoints

### Reading
- `GET /api/posts` - Published posts (`page`, `limit`, `category`, `tag`, `author`, `sort`)
- `GET /api/posts/{slug}` - One post; drafts only for their author or an admin; counts a view
- `GET /api/posts/id/{id}` - One post by id for editing (owner or admin)
- `GET /api/posts/user/published` - Current user's published posts
- `GET /api/posts/user/drafts` - Current user's drafts
- `GET /api/posts/user/{userId}` - Another user's published posts
- `GET /api/posts/{id}/comments` - Top-level comments with their replies

### Writing
- `POST /api/posts` - Create (authors and admins, 201)
- `PUT /api/posts/{id}` - Partial update (owner or admin)
- `DELETE /api/posts/{id}` - Delete with its comments and bookmarks (owner or admin)

### Engagement
- `POST /api/posts/{id}/like` - Toggle the current user's like
- `POST /api/posts/{id}/bookmark` - Toggle the post in the current user's bookmarks

## Derived Fields

Slug, read time, excerpt and SEO fields come from `inkwell.services.post_content` and are
recomputed when the title changes; read time also follows content changes. A changed title gets a
fresh unique slug.

## Caching

`GET /api/posts` responses are cached by `ResponseCacheMiddleware`; every write here clears cached
post listings and search results.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pymongo.errors import DuplicateKeyError

from inkwell.database import CommentRepository, PostRepository, UserRepository
from inkwell.managers.cache_manager import invalidate_content_cache
from inkwell.managers.logging_manager import get_logger
from inkwell.models.blog_models import (
    BookmarkToggleResponse,
    LikeToggleResponse,
    PostCategory,
    PostCreateRequest,
    PostEnvelope,
    PostSort,
    PostUpdateRequest,
)
from inkwell.models.common_models import build_pagination
from inkwell.routes.auth.dependencies import get_current_principal, get_optional_principal, require_author
from inkwell.routes.auth.models import AuthenticatedPrincipal, can_view_post, is_owner_or_admin
from inkwell.routes.dependencies import (
    Pagination,
    default_pagination,
    get_comment_repository,
    get_post_repository,
    get_user_repository,
    parse_object_id,
)
from inkwell.routes.presenters import present_comments, present_post, present_posts
from inkwell.services.post_content import derive_post_fields, generate_unique_slug
from inkwell.services.view_counter import view_counter

logger = get_logger(prefix="[Post Routes]")

router = APIRouter(prefix="/api/posts", tags=["Posts"])


async def _page_of_posts(
    filters: Dict[str, Any],
    sort: Optional[str],
    paging: Pagination,
    posts: PostRepository,
    users: UserRepository,
    comments: CommentRepository,
) -> Dict[str, Any]:
    docs, total = await posts.list_posts(filters, sort, paging.skip, paging.limit)
    return {
        "posts": await present_posts(docs, users, comments),
        "pagination": build_pagination(paging.page, paging.limit, total, "Posts"),
    }


async def persist_post_update(
    post: Dict[str, Any], changes: Dict[str, Any], posts: PostRepository
) -> Dict[str, Any]:
    """
    Apply a partial update, recomputing the derived fields it affects.

    Shared with the admin routes so both paths keep slugs and read times consistent.
    """
    title_changed = "title" in changes and changes["title"] != post.get("title")
    content_changed = "content" in changes and changes["content"] != post.get("content")

    merged = {**post, **changes}
    if title_changed:
        changes["slug"] = await generate_unique_slug(changes["title"], posts.slug_exists, exclude_id=post["_id"])
    changes.update(derive_post_fields(merged, title_changed, content_changed))

    try:
        updated = await posts.update_fields(post["_id"], changes)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Post with this slug already exists")
    if updated is None:
        raise HTTPException(status_code=404, detail="Post not found")
    await invalidate_content_cache()
    return updated


async def delete_post_cascade(
    post_id: Any, posts: PostRepository, comments: CommentRepository, users: UserRepository
) -> None:
    """Delete a post together with its comments and every bookmark pointing at it."""
    await posts.delete(post_id)
    removed_comments = await comments.delete_for_post(post_id)
    removed_bookmarks = await users.pull_bookmark_everywhere(post_id)
    logger.info(
        "Deleted post %s with %d comments and %d bookmarks", post_id, removed_comments, removed_bookmarks
    )
    await invalidate_content_cache()


@router.get("")
async def list_posts(
    category: Optional[PostCategory] = Query(None, description="Filter by category"),
    tag: Optional[str] = Query(None, description="Filter by tag"),
    author: Optional[str] = Query(None, description="Filter by author username"),
    sort: PostSort = Query(PostSort.LATEST, description="latest, popular or oldest"),
    paging: Pagination = Depends(default_pagination),
    posts: PostRepository = Depends(get_post_repository),
    users: UserRepository = Depends(get_user_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    """
    List published posts, newest first by default.

    An unknown `author` username yields an empty page rather than ignoring the filter.
    """
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

        return await _page_of_posts(filters, sort.value, paging, posts, users, comments)
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Failed to list posts: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail="Server error")


@router.post("", response_model=PostEnvelope, status_code=status.HTTP_201_CREATED)
async def create_post(
    payload: PostCreateRequest,
    principal: AuthenticatedPrincipal = Depends(require_author),
    posts: PostRepository = Depends(get_post_repository),
    users: UserRepository = Depends(get_user_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    """
    Create a post owned by the caller.

    The slug is generated from the title; a duplicate-key race on insert is retried once with a
    fresh slug before giving up with 400.
    """
    try:
        document = payload.model_dump()
        document["category"] = payload.category.value
        document["author"] = parse_object_id(principal.id)
        document.update(derive_post_fields(document, title_changed=True, content_changed=True))

        for attempt in range(2):
            document["slug"] = await generate_unique_slug(payload.title, posts.slug_exists)
            try:
                created = await posts.create(dict(document))
                break
            except DuplicateKeyError:
                logger.warning("Slug '%s' was taken concurrently (attempt %d)", document["slug"], attempt + 1)
        else:
            raise HTTPException(status_code=400, detail="Post with this slug already exists")

        await invalidate_content_cache()
        return PostEnvelope(message="Post created successfully", post=await present_post(created, users, comments))
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Failed to create post: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail="Server error")


@router.get("/user/published")
async def my_published_posts(
    paging: Pagination = Depends(default_pagination),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    posts: PostRepository = Depends(get_post_repository),
    users: UserRepository = Depends(get_user_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    filters = {"author": parse_object_id(principal.id), "is_published": True}
    return await _page_of_posts(filters, "latest", paging, posts, users, comments)


@router.get("/user/drafts")
async def my_drafts(
    paging: Pagination = Depends(default_pagination),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    posts: PostRepository = Depends(get_post_repository),
    users: UserRepository = Depends(get_user_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    filters = {"author": parse_object_id(principal.id), "is_published": False}
    return await _page_of_posts(filters, "latest", paging, posts, users, comments)


@router.get("/user/{user_id}")
async def posts_by_user(
    user_id: str,
    paging: Pagination = Depends(default_pagination),
    posts: PostRepository = Depends(get_post_repository),
    users: UserRepository = Depends(get_user_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    """Published posts of one user, newest first."""
    filters = {"author": parse_object_id(user_id), "is_published": True}
    return await _page_of_posts(filters, "latest", paging, posts, users, comments)


@router.get("/id/{post_id}", response_model=PostEnvelope)
async def get_post_by_id(
    post_id: str,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    posts: PostRepository = Depends(get_post_repository),
    users: UserRepository = Depends(get_user_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    """Fetch a post for editing; only its author and admins may load it."""
    post = await posts.find_by_id(parse_object_id(post_id))
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    if not is_owner_or_admin(principal, post.get("author")):
        raise HTTPException(status_code=403, detail="Not authorized to view this post")
    return PostEnvelope(post=await present_post(post, users, comments))


@router.get("/{post_id}/comments")
async def post_comments(
    post_id: str,
    paging: Pagination = Depends(default_pagination),
    posts: PostRepository = Depends(get_post_repository),
    users: UserRepository = Depends(get_user_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    """Top-level comments of a post, newest first, each with its replies oldest first."""
    oid = parse_object_id(post_id)
    if await posts.find_by_id(oid) is None:
        raise HTTPException(status_code=404, detail="Post not found")

    docs, total = await comments.list_top_level(oid, paging.skip, paging.limit)
    return {
        "comments": await present_comments(docs, users, comments, with_replies=True),
        "pagination": build_pagination(paging.page, paging.limit, total, "Comments"),
    }


@router.get("/{slug}", response_model=PostEnvelope)
async def get_post(
    slug: str,
    principal: Optional[AuthenticatedPrincipal] = Depends(get_optional_principal),
    posts: PostRepository = Depends(get_post_repository),
    users: UserRepository = Depends(get_user_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    """
    Read a post by slug and count the view.

    Drafts are reported as missing unless the caller is their author or an admin. The view
    increment runs in the background and is not awaited.
    """
    try:
        post = await posts.find_by_slug(slug.lower())
        if post is None or not can_view_post(post, principal):
            raise HTTPException(status_code=404, detail="Post not found")

        view_counter.record(post["_id"], posts.increment_views)
        return PostEnvelope(post=await present_post(post, users, comments, with_bio=True))
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Failed to get post '%s': %s", slug, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Server error")


@router.put("/{post_id}", response_model=PostEnvelope)
async def update_post(
    post_id: str,
    payload: PostUpdateRequest,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    posts: PostRepository = Depends(get_post_repository),
    users: UserRepository = Depends(get_user_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    """Update the fields present in the body; the author and admins only."""
    try:
        post = await posts.find_by_id(parse_object_id(post_id))
        if post is None:
            raise HTTPException(status_code=404, detail="Post not found")
        if not is_owner_or_admin(principal, post.get("author")):
            raise HTTPException(status_code=403, detail="Not authorized to update this post")

        changes = payload.model_dump(exclude_unset=True, mode="json")
        updated = await persist_post_update(post, changes, posts)
        return PostEnvelope(message="Post updated successfully", post=await present_post(updated, users, comments))
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Failed to update post %s: %s", post_id, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Server error")


@router.delete("/{post_id}")
async def delete_post(
    post_id: str,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    posts: PostRepository = Depends(get_post_repository),
    users: UserRepository = Depends(get_user_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    try:
        oid = parse_object_id(post_id)
        post = await posts.find_by_id(oid)
        if post is None:
            raise HTTPException(status_code=404, detail="Post not found")
        if not is_owner_or_admin(principal, post.get("author")):
            raise HTTPException(status_code=403, detail="Not authorized to delete this post")

        await delete_post_cascade(oid, posts, comments, users)
        return {"message": "Post deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Failed to delete post %s: %s", post_id, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Server error")


@router.post("/{post_id}/like", response_model=LikeToggleResponse)
async def toggle_post_like(
    post_id: str,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    posts: PostRepository = Depends(get_post_repository),
):
    """Like the post, or remove the like when the caller already liked it."""
    oid = parse_object_id(post_id)
    post = await posts.find_by_id(oid)
    if post is None or not can_view_post(post, principal):
        raise HTTPException(status_code=404, detail="Post not found")

    result = await posts.toggle_like(oid, parse_object_id(principal.id))
    if result is None:
        raise HTTPException(status_code=404, detail="Post not found")
    liked, like_count = result
    await invalidate_content_cache()
    return LikeToggleResponse(
        message="Post liked" if liked else "Post unliked",
        liked=liked,
        like_count=like_count,
    )


@router.post("/{post_id}/bookmark", response_model=BookmarkToggleResponse)
async def toggle_post_bookmark(
    post_id: str,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    posts: PostRepository = Depends(get_post_repository),
    users: UserRepository = Depends(get_user_repository),
):
    oid = parse_object_id(post_id)
    post = await posts.find_by_id(oid)
    if post is None or not can_view_post(post, principal):
        raise HTTPException(status_code=404, detail="Post not found")

    result = await users.toggle_bookmark(parse_object_id(principal.id), oid)
    if result is None:
        raise HTTPException(status_code=404, detail="User not found")
    bookmarked, bookmark_count = result
    return BookmarkToggleResponse(
        message="Post bookmarked" if bookmarked else "Bookmark removed",
        bookmarked=bookmarked,
        bookmark_count=bookmark_count,
    )
