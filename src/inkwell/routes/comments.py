"""
# Comment Routes

Threaded comments under `/api/comments`. Threads are one level deep: a reply names its parent
with `parentCommentId`, and deleting a comment also deletes its replies.

## API Endpoints

- `POST /api/comments` - Comment on a published post, optionally as a reply (auth, 201)
- `PUT /api/comments/{id}` - Edit content; marks the comment as edited (author or admin)
- `DELETE /api/comments/{id}` - Delete with replies (author or admin)
- `POST /api/comments/{id}/like` - Toggle the current user's like (auth)
- `GET /api/comments/{id}/replies` - Replies, oldest first
- `GET /api/comments/user/{userId}` - A user's comments, newest first, with post title and slug
"""

from fastapi import APIRouter, Depends, HTTPException, status

from inkwell.database import CommentRepository, PostRepository, UserRepository
from inkwell.managers.cache_manager import invalidate_content_cache
from inkwell.managers.logging_manager import get_logger
from inkwell.models.blog_models import CommentCreateRequest, CommentEnvelope, CommentUpdateRequest, LikeToggleResponse
from inkwell.models.common_models import build_pagination
from inkwell.routes.auth.dependencies import get_current_principal
from inkwell.routes.auth.models import AuthenticatedPrincipal, is_owner_or_admin
from inkwell.routes.dependencies import (
    Pagination,
    default_pagination,
    get_comment_repository,
    get_post_repository,
    get_user_repository,
    parse_object_id,
)
from inkwell.routes.presenters import present_comment, present_comments

logger = get_logger(prefix="[Comment Routes]")

router = APIRouter(prefix="/api/comments", tags=["Comments"])


@router.post("", response_model=CommentEnvelope, status_code=status.HTTP_201_CREATED)
async def create_comment(
    payload: CommentCreateRequest,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    posts: PostRepository = Depends(get_post_repository),
    users: UserRepository = Depends(get_user_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    """
    Add a comment or reply.

    Raises:
        HTTPException(404): The post or the parent comment does not exist.
        HTTPException(400): The post is not published, or the parent comment is on another post.
    """
    try:
        post = await posts.find_by_id(parse_object_id(payload.post_id))
        if post is None:
            raise HTTPException(status_code=404, detail="Post not found")
        if not post.get("is_published"):
            raise HTTPException(status_code=400, detail="Cannot comment on unpublished posts")

        parent_id = None
        if payload.parent_comment_id:
            parent = await comments.find_by_id(parse_object_id(payload.parent_comment_id))
            if parent is None:
                raise HTTPException(status_code=404, detail="Parent comment not found")
            if str(parent.get("post")) != str(post["_id"]):
                raise HTTPException(status_code=400, detail="Parent comment belongs to another post")
            parent_id = parent["_id"]

        created = await comments.create(post["_id"], parse_object_id(principal.id), payload.content, parent_id)
        await invalidate_content_cache()
        return CommentEnvelope(message="Comment created successfully", comment=await present_comment(created, users))
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Failed to create comment: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail="Server error")


@router.get("/user/{user_id}")
async def comments_by_user(
    user_id: str,
    paging: Pagination = Depends(default_pagination),
    posts: PostRepository = Depends(get_post_repository),
    users: UserRepository = Depends(get_user_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    docs, total = await comments.list_by_author(parse_object_id(user_id), paging.skip, paging.limit)
    return {
        "comments": await present_comments(docs, users, comments, posts=posts),
        "pagination": build_pagination(paging.page, paging.limit, total, "Comments"),
    }


@router.put("/{comment_id}", response_model=CommentEnvelope)
async def update_comment(
    comment_id: str,
    payload: CommentUpdateRequest,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    users: UserRepository = Depends(get_user_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    try:
        oid = parse_object_id(comment_id)
        comment = await comments.find_by_id(oid)
        if comment is None:
            raise HTTPException(status_code=404, detail="Comment not found")
        if not is_owner_or_admin(principal, comment.get("author")):
            raise HTTPException(status_code=403, detail="Not authorized to update this comment")

        updated = await comments.update_content(oid, payload.content)
        if updated is None:
            raise HTTPException(status_code=404, detail="Comment not found")
        await invalidate_content_cache()
        return CommentEnvelope(message="Comment updated successfully", comment=await present_comment(updated, users))
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Failed to update comment %s: %s", comment_id, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Server error")


@router.delete("/{comment_id}")
async def delete_comment(
    comment_id: str,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    comments: CommentRepository = Depends(get_comment_repository),
):
    """Delete a comment together with its direct replies."""
    try:
        oid = parse_object_id(comment_id)
        comment = await comments.find_by_id(oid)
        if comment is None:
            raise HTTPException(status_code=404, detail="Comment not found")
        if not is_owner_or_admin(principal, comment.get("author")):
            raise HTTPException(status_code=403, detail="Not authorized to delete this comment")

        await comments.delete_with_replies(oid)
        await invalidate_content_cache()
        return {"message": "Comment deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Failed to delete comment %s: %s", comment_id, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Server error")


@router.post("/{comment_id}/like", response_model=LikeToggleResponse)
async def toggle_comment_like(
    comment_id: str,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    comments: CommentRepository = Depends(get_comment_repository),
):
    result = await comments.toggle_like(parse_object_id(comment_id), parse_object_id(principal.id))
    if result is None:
        raise HTTPException(status_code=404, detail="Comment not found")
    liked, like_count = result
    return LikeToggleResponse(
        message="Comment liked" if liked else "Comment unliked",
        liked=liked,
        like_count=like_count,
    )


@router.get("/{comment_id}/replies")
async def comment_replies(
    comment_id: str,
    paging: Pagination = Depends(default_pagination),
    users: UserRepository = Depends(get_user_repository),
    comments: CommentRepository = Depends(get_comment_repository),
):
    oid = parse_object_id(comment_id)
    if await comments.find_by_id(oid) is None:
        raise HTTPException(status_code=404, detail="Comment not found")

    docs, total = await comments.list_replies(oid, paging.skip, paging.limit)
    return {
        "replies": await present_comments(docs, users, comments),
        "pagination": build_pagination(paging.page, paging.limit, total, "Replies"),
    }
