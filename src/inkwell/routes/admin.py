"""
# Admin Routes

Moderation endpoints under `/api/admin`. Every route requires the `admin` role.

## API Endpoints

### Listing
- `GET /api/admin/users` - All users with their bookmarks (paginated, `limit` up to 100)
- `GET /api/admin/posts` - All posts, drafts included, with their likes
- `GET /api/admin/comments` - All comments with their likes and post
- `GET /api/admin/stats` - Totals for users, posts, published posts and comments

### Editing
- `PUT /api/admin/users/{id}` / `posts/{id}` / `comments/{id}` - Partial updates
- `DELETE /api/admin/users/{id}` / `posts/{id}` / `comments/{id}` - Deletes with the same cascades
  as the owner-facing routes; admins cannot delete their own account

### Point Removals
- `DELETE /api/admin/posts/{postId}/like/{userId}`
- `DELETE /api/admin/comments/{commentId}/like/{userId}`
- `DELETE /api/admin/users/{userId}/bookmark/{postId}`

Each answers 404 when the like or bookmark does not exist.

Update bodies go through the admin update models, so unknown keys and operator-looking keys never
reach MongoDB; passwords cannot be changed here.
"""

from fastapi import APIRouter, Depends, HTTPException
from pymongo.errors import DuplicateKeyError

from inkwell.database import CommentRepository, PostRepository, UserRepository
from inkwell.managers.cache_manager import invalidate_content_cache
from inkwell.managers.logging_manager import get_logger
from inkwell.models.blog_models import AdminCommentUpdateRequest, AdminPostUpdateRequest, PostEnvelope
from inkwell.models.common_models import build_pagination
from inkwell.models.user_models import AdminUserUpdateRequest, UserProfileResponse, UserResponse
from inkwell.routes.auth.dependencies import require_admin
from inkwell.routes.auth.models import AuthenticatedPrincipal
from inkwell.routes.dependencies import (
    Pagination,
    admin_pagination,
    get_comment_repository,
    get_post_repository,
    get_user_repository,
    parse_object_id,
)
from inkwell.routes.posts import delete_post_cascade, persist_post_update
from inkwell.routes.presenters import present_comment, present_comments, present_post, present_posts
from inkwell.routes.users import delete_user_cascade

logger = get_logger(prefix="[Admin Routes]")

router = APIRouter(prefix="/api/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


# --- Users ---


@router.get("/users")
async def admin_list_users(
    paging: Pagination = Depends(admin_pagination),
    users: UserRepository = Depends(get_user_repository),
):
    docs, total = await users.list(paging.skip, paging.limit)
    return {
        "users": [UserResponse.from_document(doc, include_private=True) for doc in docs],
        "pagination": build_pagination(paging.page, paging.limit, total, "Users"),
    }


@router.put("/users/{user_id}", response_model=UserProfileResponse)
async def admin_update_user(
    user_id: str,
    payload: AdminUserUpdateRequest,
    users: UserRepository = Depends(get_user_repository),
):
    changes = payload.model_dump(exclude_unset=True, mode="json")
    try:
        oid = parse_object_id(user_id)
        user = await users.update_fields(oid, changes) if changes else await users.find_by_id(oid)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="User already exists")
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    logger.info("Admin updated user %s: %s", user_id, sorted(changes))
    return UserProfileResponse(message="User updated", user=UserResponse.from_document(user, include_private=True))


@router.delete("/users/{user_id}")
async def admin_delete_user(
    user_id: str,
    principal: AuthenticatedPrincipal = Depends(require_admin),
    users: UserRepository = Depends(get_user_repository),
    posts: PostRepository = Depends(get_post_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    oid = parse_object_id(user_id)
    if await users.find_by_id(oid) is None:
        raise HTTPException(status_code=404, detail="User not found")
    if principal.id == str(oid):
        raise HTTPException(status_code=400, detail="Cannot delete your own account")
    await delete_user_cascade(oid, users, posts, comments)
    return {"message": "User deleted"}


@router.delete("/users/{user_id}/bookmark/{post_id}")
async def admin_remove_bookmark(
    user_id: str,
    post_id: str,
    users: UserRepository = Depends(get_user_repository),
):
    oid = parse_object_id(user_id)
    post_oid = parse_object_id(post_id)
    if await users.find_by_id(oid) is None:
        raise HTTPException(status_code=404, detail="User not found")
    if not await users.remove_bookmark(oid, post_oid):
        raise HTTPException(status_code=404, detail="Bookmark not found for this user on this post")
    return {"message": "Bookmark removed from user"}


# --- Posts ---


@router.get("/posts")
async def admin_list_posts(
    paging: Pagination = Depends(admin_pagination),
    posts: PostRepository = Depends(get_post_repository),
    users: UserRepository = Depends(get_user_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    docs, total = await posts.list_posts({}, "latest", paging.skip, paging.limit)
    return {
        "posts": await present_posts(docs, users, comments),
        "pagination": build_pagination(paging.page, paging.limit, total, "Posts"),
    }


@router.put("/posts/{post_id}", response_model=PostEnvelope)
async def admin_update_post(
    post_id: str,
    payload: AdminPostUpdateRequest,
    posts: PostRepository = Depends(get_post_repository),
    users: UserRepository = Depends(get_user_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    post = await posts.find_by_id(parse_object_id(post_id))
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")

    changes = payload.model_dump(exclude_unset=True, mode="json")
    updated = await persist_post_update(post, changes, posts) if changes else post
    return PostEnvelope(message="Post updated", post=await present_post(updated, users, comments))


@router.delete("/posts/{post_id}")
async def admin_delete_post(
    post_id: str,
    posts: PostRepository = Depends(get_post_repository),
    users: UserRepository = Depends(get_user_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    oid = parse_object_id(post_id)
    if await posts.find_by_id(oid) is None:
        raise HTTPException(status_code=404, detail="Post not found")
    await delete_post_cascade(oid, posts, comments, users)
    return {"message": "Post deleted"}


@router.delete("/posts/{post_id}/like/{user_id}")
async def admin_remove_post_like(
    post_id: str,
    user_id: str,
    posts: PostRepository = Depends(get_post_repository),
):
    oid = parse_object_id(post_id)
    user_oid = parse_object_id(user_id)
    if await posts.find_by_id(oid) is None:
        raise HTTPException(status_code=404, detail="Post not found")
    if not await posts.remove_like(oid, user_oid):
        raise HTTPException(status_code=404, detail="Like not found for this user on this post")
    await invalidate_content_cache()
    return {"message": "Like removed from post"}


# --- Comments ---


@router.get("/comments")
async def admin_list_comments(
    paging: Pagination = Depends(admin_pagination),
    posts: PostRepository = Depends(get_post_repository),
    users: UserRepository = Depends(get_user_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    docs, total = await comments.list_all(paging.skip, paging.limit)
    return {
        "comments": await present_comments(docs, users, comments, posts=posts),
        "pagination": build_pagination(paging.page, paging.limit, total, "Comments"),
    }


@router.put("/comments/{comment_id}")
async def admin_update_comment(
    comment_id: str,
    payload: AdminCommentUpdateRequest,
    users: UserRepository = Depends(get_user_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    oid = parse_object_id(comment_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    comment = await comments.update_fields(oid, changes) if changes else await comments.find_by_id(oid)
    if comment is None:
        raise HTTPException(status_code=404, detail="Comment not found")
    await invalidate_content_cache()
    return {"message": "Comment updated", "comment": await present_comment(comment, users)}


@router.delete("/comments/{comment_id}")
async def admin_delete_comment(
    comment_id: str,
    comments: CommentRepository = Depends(get_comment_repository),
):
    oid = parse_object_id(comment_id)
    if await comments.find_by_id(oid) is None:
        raise HTTPException(status_code=404, detail="Comment not found")
    await comments.delete_with_replies(oid)
    await invalidate_content_cache()
    return {"message": "Comment deleted"}


@router.delete("/comments/{comment_id}/like/{user_id}")
async def admin_remove_comment_like(
    comment_id: str,
    user_id: str,
    comments: CommentRepository = Depends(get_comment_repository),
):
    oid = parse_object_id(comment_id)
    user_oid = parse_object_id(user_id)
    if await comments.find_by_id(oid) is None:
        raise HTTPException(status_code=404, detail="Comment not found")
    if not await comments.remove_like(oid, user_oid):
        raise HTTPException(status_code=404, detail="Like not found for this user on this comment")
    return {"message": "Like removed from comment"}


# --- Dashboard ---


@router.get("/stats")
async def admin_stats(
    users: UserRepository = Depends(get_user_repository),
    posts: PostRepository = Depends(get_post_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    return {
        "totalUsers": await users.count(),
        "totalPosts": await posts.count(),
        "publishedPosts": await posts.count({"is_published": True}),
        "totalComments": await comments.count(),
    }
