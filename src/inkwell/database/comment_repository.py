"""
Persistence for the `comments` collection.

Threads are one level deep: a reply points at its parent through `parent_comment`, and deleting a
comment removes it together with its direct replies in a single `delete_many`.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from inkwell.managers.logging_manager import get_logger
from inkwell.services.membership import toggle_membership, toggle_operator

logger = get_logger(prefix="[Comment Repository]")


def _oid(value: Any) -> ObjectId:
    return value if isinstance(value, ObjectId) else ObjectId(str(value))


def cascade_filter(comment_id: Any) -> Dict[str, Any]:
    """Filter matching a comment and its direct replies."""
    oid = _oid(comment_id)
    return {"$or": [{"_id": oid}, {"parent_comment": oid}]}


class CommentRepository:
    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def create(self, post_id: Any, author_id: Any, content: str, parent_id: Optional[Any] = None) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        document = {
            "content": content,
            "post": _oid(post_id),
            "author": _oid(author_id),
            "parent_comment": _oid(parent_id) if parent_id else None,
            "likes": [],
            "is_edited": False,
            "edited_at": None,
            "created_at": now,
            "updated_at": now,
        }
        result = await self.collection.insert_one(document)
        document["_id"] = result.inserted_id
        return document

    async def find_by_id(self, comment_id: Any) -> Optional[Dict[str, Any]]:
        return await self.collection.find_one({"_id": _oid(comment_id)})

    async def update_content(self, comment_id: Any, content: str) -> Optional[Dict[str, Any]]:
        """Replace the content and mark the comment as edited."""
        now = datetime.now(timezone.utc)
        return await self.collection.find_one_and_update(
            {"_id": _oid(comment_id)},
            {"$set": {"content": content, "is_edited": True, "edited_at": now, "updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )

    async def update_fields(self, comment_id: Any, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if "content" in fields:
            return await self.update_content(comment_id, fields["content"])
        update = dict(fields)
        update["updated_at"] = datetime.now(timezone.utc)
        return await self.collection.find_one_and_update(
            {"_id": _oid(comment_id)}, {"$set": update}, return_document=ReturnDocument.AFTER
        )

    async def delete_with_replies(self, comment_id: Any) -> int:
        result = await self.collection.delete_many(cascade_filter(comment_id))
        logger.info("Deleted comment %s with %d documents", comment_id, result.deleted_count)
        return result.deleted_count

    async def delete_for_post(self, post_id: Any) -> int:
        result = await self.collection.delete_many({"post": _oid(post_id)})
        return result.deleted_count

    async def delete_for_posts(self, post_ids: List[Any]) -> int:
        if not post_ids:
            return 0
        result = await self.collection.delete_many({"post": {"$in": [_oid(p) for p in post_ids]}})
        return result.deleted_count

    async def delete_by_author(self, author_id: Any) -> int:
        """Delete the author's comments and every reply to them."""
        ids = [doc["_id"] async for doc in self.collection.find({"author": _oid(author_id)}, {"_id": 1})]
        if not ids:
            return 0
        result = await self.collection.delete_many({"$or": [{"_id": {"$in": ids}}, {"parent_comment": {"$in": ids}}]})
        return result.deleted_count

    async def _page(
        self, filters: Dict[str, Any], direction: int, skip: int, limit: int
    ) -> Tuple[List[Dict[str, Any]], int]:
        cursor = self.collection.find(filters).sort("created_at", direction).skip(skip).limit(limit)
        docs = await cursor.to_list(length=limit)
        total = await self.collection.count_documents(filters)
        return docs, total

    async def list_top_level(self, post_id: Any, skip: int, limit: int) -> Tuple[List[Dict[str, Any]], int]:
        return await self._page({"post": _oid(post_id), "parent_comment": None}, DESCENDING, skip, limit)

    async def list_replies(self, comment_id: Any, skip: int, limit: int) -> Tuple[List[Dict[str, Any]], int]:
        return await self._page({"parent_comment": _oid(comment_id)}, ASCENDING, skip, limit)

    async def list_by_author(self, author_id: Any, skip: int, limit: int) -> Tuple[List[Dict[str, Any]], int]:
        return await self._page({"author": _oid(author_id)}, DESCENDING, skip, limit)

    async def list_all(self, skip: int, limit: int) -> Tuple[List[Dict[str, Any]], int]:
        return await self._page({}, DESCENDING, skip, limit)

    async def replies_for(self, parent_ids: List[Any]) -> Dict[str, List[Dict[str, Any]]]:
        """All replies to the given comments, oldest first, grouped by parent id."""
        grouped: Dict[str, List[Dict[str, Any]]] = {str(p): [] for p in parent_ids}
        if not parent_ids:
            return grouped
        cursor = self.collection.find({"parent_comment": {"$in": [_oid(p) for p in parent_ids]}}).sort(
            "created_at", ASCENDING
        )
        async for doc in cursor:
            grouped.setdefault(str(doc["parent_comment"]), []).append(doc)
        return grouped

    async def reply_counts(self, comment_ids: List[Any]) -> Dict[str, int]:
        if not comment_ids:
            return {}
        pipeline = [
            {"$match": {"parent_comment": {"$in": [_oid(c) for c in comment_ids]}}},
            {"$group": {"_id": "$parent_comment", "count": {"$sum": 1}}},
        ]
        rows = await self.collection.aggregate(pipeline).to_list(length=None)
        return {str(row["_id"]): row["count"] for row in rows}

    async def count_for_posts(self, post_ids: List[Any]) -> Dict[str, int]:
        """Number of comments (replies included) per post id."""
        if not post_ids:
            return {}
        pipeline = [
            {"$match": {"post": {"$in": [_oid(p) for p in post_ids]}}},
            {"$group": {"_id": "$post", "count": {"$sum": 1}}},
        ]
        rows = await self.collection.aggregate(pipeline).to_list(length=None)
        return {str(row["_id"]): row["count"] for row in rows}

    async def toggle_like(self, comment_id: Any, user_id: Any) -> Optional[Tuple[bool, int]]:
        comment = await self.collection.find_one({"_id": _oid(comment_id)}, {"likes": 1})
        if comment is None:
            return None
        likes, liked = toggle_membership(comment.get("likes"), user_id)
        await self.collection.update_one(
            {"_id": _oid(comment_id)}, {toggle_operator(liked): {"likes": _oid(user_id)}}
        )
        return liked, len(likes)

    async def remove_like(self, comment_id: Any, user_id: Any) -> bool:
        result = await self.collection.update_one(
            {"_id": _oid(comment_id), "likes": _oid(user_id)}, {"$pull": {"likes": _oid(user_id)}}
        )
        return result.modified_count > 0

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        return await self.collection.count_documents(filters or {})
