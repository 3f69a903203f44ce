"""
Helpers turning stored documents into API responses.

They batch the lookups a list needs (authors, comment counts, replies) so a page costs a fixed
number of queries instead of one per item.
"""

from typing import Any, Dict, List, Optional

from inkwell.database import CommentRepository, PostRepository, UserRepository
from inkwell.models.blog_models import CommentResponse, PostResponse


async def present_posts(
    docs: List[Dict[str, Any]],
    users: UserRepository,
    comments: CommentRepository,
    include_content: bool = False,
) -> List[PostResponse]:
    authors = await users.find_many_by_ids([doc.get("author") for doc in docs])
    counts = await comments.count_for_posts([doc["_id"] for doc in docs])
    return [
        PostResponse.from_document(
            doc,
            author=authors.get(str(doc.get("author"))),
            comment_count=counts.get(str(doc["_id"]), 0),
            include_content=include_content,
        )
        for doc in docs
    ]


async def present_post(
    doc: Dict[str, Any], users: UserRepository, comments: CommentRepository, with_bio: bool = False
) -> PostResponse:
    """Full post with its author (optionally with bio) and comment count."""
    author = await users.find_by_id(doc["author"]) if doc.get("author") else None
    counts = await comments.count_for_posts([doc["_id"]])
    return PostResponse.from_document(
        doc, author=author, comment_count=counts.get(str(doc["_id"]), 0), with_bio=with_bio
    )


async def present_comments(
    docs: List[Dict[str, Any]],
    users: UserRepository,
    comments: CommentRepository,
    with_replies: bool = False,
    posts: Optional[PostRepository] = None,
) -> List[CommentResponse]:
    """
    Convert comments for a response.

    Args:
        with_replies (bool): Embed each comment's replies (oldest first).
        posts (PostRepository, optional): When given, embed each comment's post as `{id, title, slug}`.
    """
    ids = [doc["_id"] for doc in docs]
    replies_by_parent: Dict[str, List[Dict[str, Any]]] = {}
    reply_counts: Dict[str, int] = {}
    if with_replies:
        replies_by_parent = await comments.replies_for(ids)
    else:
        reply_counts = await comments.reply_counts(ids)

    author_ids = [doc.get("author") for doc in docs]
    for replies in replies_by_parent.values():
        author_ids.extend(reply.get("author") for reply in replies)
    authors = await users.find_many_by_ids(author_ids)

    post_docs: Dict[str, Dict[str, Any]] = {}
    if posts is not None:
        post_docs = await posts.find_many_by_ids([doc.get("post") for doc in docs], {"title": 1, "slug": 1})

    results = []
    for doc in docs:
        key = str(doc["_id"])
        replies = None
        if with_replies:
            replies = [
                CommentResponse.from_document(reply, author=authors.get(str(reply.get("author"))), reply_count=0)
                for reply in replies_by_parent.get(key, [])
            ]
        results.append(
            CommentResponse.from_document(
                doc,
                author=authors.get(str(doc.get("author"))),
                post=post_docs.get(str(doc.get("post"))),
                replies=replies,
                reply_count=None if with_replies else reply_counts.get(key, 0),
            )
        )
    return results


async def present_comment(doc: Dict[str, Any], users: UserRepository) -> CommentResponse:
    author = await users.find_by_id(doc["author"]) if doc.get("author") else None
    return CommentResponse.from_document(doc, author=author, reply_count=0)
