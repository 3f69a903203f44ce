"""
# User Routes

Public profiles and account management under `/api/users`.

## API Endpoints

- `GET /api/users/{username}` - Public profile and published posts (paginated)
- `PUT /api/users/{id}` - Update profile fields (owner or admin)
- `DELETE /api/users/{id}` - Delete an account with its posts and comments (admin, not self)
- `POST /api/users/{id}/bookmark/{postId}` - Toggle a bookmark (self only)
- `GET /api/users/{id}/bookmarks` - Bookmarked posts, newest first (self only)
- `GET /api/users/{id}/stats` - Post, view, like and comment totals
- `POST /api/users/{id}/upload-avatar` - Upload a profile image (owner or admin)

## Privacy

Public profiles never include the password hash or email, and hide location, interests and
social links when the user's privacy settings say so. The owner and admins see everything.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from inkwell.database import CommentRepository, PostRepository, UserRepository
from inkwell.managers.cache_manager import invalidate_content_cache
from inkwell.managers.logging_manager import get_logger
from inkwell.models.common_models import build_pagination
from inkwell.models.user_models import (
    AvatarUploadResponse,
    UserProfileResponse,
    UserProfileUpdateRequest,
    UserResponse,
    UserStatsResponse,
)
from inkwell.routes.auth.dependencies import get_current_principal, get_optional_principal, require_admin
from inkwell.routes.auth.models import AuthenticatedPrincipal, is_owner_or_admin
from inkwell.routes.dependencies import (
    Pagination,
    default_pagination,
    get_comment_repository,
    get_post_repository,
    get_user_repository,
    parse_object_id,
)
from inkwell.routes.presenters import present_posts
from inkwell.services.avatar_storage import AvatarTooLargeError, UnsupportedAvatarTypeError, avatar_storage

logger = get_logger(prefix="[User Routes]")

router = APIRouter(prefix="/api/users", tags=["Users"])


def _require_self(principal: AuthenticatedPrincipal, user_id: str) -> None:
    if principal.id != user_id:
        raise HTTPException(status_code=403, detail="Not authorized")


@router.get("/{username}")
async def get_user_profile(
    username: str,
    paging: Pagination = Depends(default_pagination),
    principal: Optional[AuthenticatedPrincipal] = Depends(get_optional_principal),
    users: UserRepository = Depends(get_user_repository),
    posts: PostRepository = Depends(get_post_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    """Public profile of `username` with their published posts, newest first."""
    try:
        user = await users.find_by_username(username)
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")

        docs, total = await posts.list_posts(
            {"author": user["_id"], "is_published": True}, "latest", paging.skip, paging.limit
        )
        include_private = is_owner_or_admin(principal, user["_id"])
        return {
            "user": UserResponse.from_document(user, include_private=include_private),
            "posts": await present_posts(docs, users, comments),
            "pagination": build_pagination(paging.page, paging.limit, total, "Posts"),
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Failed to load profile '%s': %s", username, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Server error")


@router.put("/{user_id}", response_model=UserProfileResponse)
async def update_user_profile(
    user_id: str,
    payload: UserProfileUpdateRequest,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    users: UserRepository = Depends(get_user_repository),
):
    try:
        oid = parse_object_id(user_id)
        if not is_owner_or_admin(principal, oid):
            raise HTTPException(status_code=403, detail="Not authorized to update this profile")

        changes = payload.model_dump(exclude_unset=True, mode="json")
        if not changes:
            user = await users.find_by_id(oid)
        else:
            user = await users.update_fields(oid, changes)
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")

        return UserProfileResponse(
            message="Profile updated successfully", user=UserResponse.from_document(user, include_private=True)
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Failed to update user %s: %s", user_id, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Server error")


async def delete_user_cascade(
    user_id, users: UserRepository, posts: PostRepository, comments: CommentRepository
) -> None:
    """Delete an account, the posts it wrote (with their comments and bookmarks) and its comments."""
    post_ids = await posts.delete_by_author(user_id)
    removed = await comments.delete_for_posts(post_ids)
    removed += await comments.delete_by_author(user_id)
    for post_id in post_ids:
        await users.pull_bookmark_everywhere(post_id)
    await users.delete(user_id)
    logger.info("Deleted user %s with %d posts and %d comments", user_id, len(post_ids), removed)
    await invalidate_content_cache()


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    principal: AuthenticatedPrincipal = Depends(require_admin),
    users: UserRepository = Depends(get_user_repository),
    posts: PostRepository = Depends(get_post_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    try:
        oid = parse_object_id(user_id)
        user = await users.find_by_id(oid)
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")
        if principal.id == str(oid):
            raise HTTPException(status_code=400, detail="Cannot delete your own account")

        await delete_user_cascade(oid, users, posts, comments)
        return {"message": "User deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Failed to delete user %s: %s", user_id, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Server error")


@router.post("/{user_id}/bookmark/{post_id}")
async def toggle_user_bookmark(
    user_id: str,
    post_id: str,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    users: UserRepository = Depends(get_user_repository),
    posts: PostRepository = Depends(get_post_repository),
):
    """Toggle a bookmark on the caller's own account."""
    oid = parse_object_id(user_id)
    post_oid = parse_object_id(post_id)
    _require_self(principal, str(oid))

    if await posts.find_by_id(post_oid) is None:
        raise HTTPException(status_code=404, detail="Post not found")

    result = await users.toggle_bookmark(oid, post_oid)
    if result is None:
        raise HTTPException(status_code=404, detail="User not found")
    bookmarked, bookmark_count = result
    return {
        "message": "Post added to bookmarks" if bookmarked else "Post removed from bookmarks",
        "bookmarked": bookmarked,
        "bookmarkCount": bookmark_count,
    }


@router.get("/{user_id}/bookmarks")
async def user_bookmarks(
    user_id: str,
    paging: Pagination = Depends(default_pagination),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    users: UserRepository = Depends(get_user_repository),
    posts: PostRepository = Depends(get_post_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    oid = parse_object_id(user_id)
    _require_self(principal, str(oid))

    user = await users.find_by_id(oid)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")

    docs, total = await posts.list_by_ids(user.get("bookmarks") or [], paging.skip, paging.limit)
    return {
        "bookmarks": await present_posts(docs, users, comments),
        "pagination": build_pagination(paging.page, paging.limit, total, "Bookmarks"),
    }


@router.get("/{user_id}/stats", response_model=UserStatsResponse, response_model_exclude_none=True)
async def user_stats(
    user_id: str,
    principal: Optional[AuthenticatedPrincipal] = Depends(get_optional_principal),
    users: UserRepository = Depends(get_user_repository),
    posts: PostRepository = Depends(get_post_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    """
    Writing statistics for a user.

    Everyone sees figures over published posts; the user and admins also get the drafts count and
    totals that include drafts.
    """
    oid = parse_object_id(user_id)
    if await users.find_by_id(oid) is None:
        raise HTTPException(status_code=404, detail="User not found")

    private = is_owner_or_admin(principal, oid)
    stats = await posts.stats_for_author(oid)
    post_ids = await posts.ids_for_author(oid, published_only=not private)
    comment_counts = await comments.count_for_posts(post_ids)

    return UserStatsResponse(
        total_posts=stats["total_posts"] if private else stats["published_posts"],
        published_posts=stats["published_posts"],
        drafts=stats["drafts"] if private else None,
        total_views=stats["total_views"] if private else stats["published_views"],
        total_likes=stats["total_likes"] if private else stats["published_likes"],
        total_comments=sum(comment_counts.values()),
    )


@router.post("/{user_id}/upload-avatar", response_model=AvatarUploadResponse)
async def upload_avatar(
    user_id: str,
    avatar: UploadFile = File(..., description="JPEG, PNG, GIF or WebP image"),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    users: UserRepository = Depends(get_user_repository),
):
    """
    Store a new profile image and point the user's `avatar` at it.

    Raises:
        HTTPException(400): Unsupported file type or file too large.
    """
    try:
        oid = parse_object_id(user_id)
        if not is_owner_or_admin(principal, oid):
            raise HTTPException(status_code=403, detail="Not authorized to update this profile")
        if await users.find_by_id(oid) is None:
            raise HTTPException(status_code=404, detail="User not found")

        url = await avatar_storage.save(str(oid), avatar)
        user = await users.update_fields(oid, {"avatar": url})
        return AvatarUploadResponse(
            message="Avatar uploaded successfully",
            avatar=url,
            user=UserResponse.from_document(user, include_private=True),
        )
    except (AvatarTooLargeError, UnsupportedAvatarTypeError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Failed to upload avatar for %s: %s", user_id, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Server error")
    finally:
        await avatar.close()
