"""
Persistence for the `posts` collection.

Sort options shared by the list and search endpoints:

| `sort` | MongoDB sort |
|--------|--------------|
| `latest` (default) | `created_at` desc |
| `popular` | `view_count` desc, then `created_at` desc |
| `oldest` | `created_at` asc |
"""

import re
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from inkwell.managers.logging_manager import get_logger
from inkwell.services.membership import toggle_membership, toggle_operator
from inkwell.utils.logging_utils import log_performance

logger = get_logger(prefix="[Post Repository]")

SORT_OPTIONS = {
    "latest": [("created_at", DESCENDING)],
    "popular": [("view_count", DESCENDING), ("created_at", DESCENDING)],
    "oldest": [("created_at", ASCENDING)],
}


def sort_spec(sort: Optional[str]) -> List[Tuple[str, int]]:
    return SORT_OPTIONS.get(sort or "latest", SORT_OPTIONS["latest"])


def _oid(value: Any) -> ObjectId:
    return value if isinstance(value, ObjectId) else ObjectId(str(value))


def _contains(query: str) -> Dict[str, str]:
    return {"$regex": re.escape(query), "$options": "i"}


class PostRepository:
    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def slug_exists(self, slug: str, exclude_id: Optional[Any] = None) -> bool:
        filters: Dict[str, Any] = {"slug": slug}
        if exclude_id is not None:
            filters["_id"] = {"$ne": _oid(exclude_id)}
        return await self.collection.count_documents(filters, limit=1) > 0

    async def create(self, document: Dict[str, Any]) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        document.setdefault("likes", [])
        document.setdefault("view_count", 0)
        document.setdefault("created_at", now)
        document.setdefault("updated_at", now)
        result = await self.collection.insert_one(document)
        document["_id"] = result.inserted_id
        logger.info("Created post '%s' (%s)", document.get("slug"), result.inserted_id)
        return document

    async def find_by_id(self, post_id: Any) -> Optional[Dict[str, Any]]:
        return await self.collection.find_one({"_id": _oid(post_id)})

    async def find_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        return await self.collection.find_one({"slug": slug})

    async def update_fields(self, post_id: Any, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        update = dict(fields)
        update["updated_at"] = datetime.now(timezone.utc)
        return await self.collection.find_one_and_update(
            {"_id": _oid(post_id)}, {"$set": update}, return_document=ReturnDocument.AFTER
        )

    async def delete(self, post_id: Any) -> bool:
        result = await self.collection.delete_one({"_id": _oid(post_id)})
        return result.deleted_count > 0

    async def delete_by_author(self, author_id: Any) -> List[ObjectId]:
        """Delete every post by `author_id` and return the deleted ids."""
        ids = [doc["_id"] async for doc in self.collection.find({"author": _oid(author_id)}, {"_id": 1})]
        if ids:
            await self.collection.delete_many({"_id": {"$in": ids}})
        return ids

    async def list_posts(
        self, filters: Dict[str, Any], sort: Optional[str], skip: int, limit: int
    ) -> Tuple[List[Dict[str, Any]], int]:
        cursor = self.collection.find(filters).sort(sort_spec(sort)).skip(skip).limit(limit)
        docs = await cursor.to_list(length=limit)
        total = await self.collection.count_documents(filters)
        return docs, total

    async def list_by_ids(self, ids: List[Any], skip: int, limit: int) -> Tuple[List[Dict[str, Any]], int]:
        filters = {"_id": {"$in": [_oid(i) for i in ids]}}
        return await self.list_posts(filters, "latest", skip, limit)

    async def find_many_by_ids(self, ids: List[Any], projection: Optional[Dict[str, int]] = None) -> Dict[str, Dict[str, Any]]:
        unique = list({str(i) for i in ids if i is not None})
        if not unique:
            return {}
        cursor = self.collection.find({"_id": {"$in": [_oid(i) for i in unique]}}, projection)
        return {str(doc["_id"]): doc async for doc in cursor}

    async def toggle_like(self, post_id: Any, user_id: Any) -> Optional[Tuple[bool, int]]:
        """
        Toggle the user's like on a post.

        Returns:
            Optional[Tuple[bool, int]]: `(liked, like_count)`, or `None` when the post is missing.
        """
        post = await self.collection.find_one({"_id": _oid(post_id)}, {"likes": 1})
        if post is None:
            return None
        likes, liked = toggle_membership(post.get("likes"), user_id)
        await self.collection.update_one({"_id": _oid(post_id)}, {toggle_operator(liked): {"likes": _oid(user_id)}})
        return liked, len(likes)

    async def remove_like(self, post_id: Any, user_id: Any) -> bool:
        result = await self.collection.update_one(
            {"_id": _oid(post_id), "likes": _oid(user_id)}, {"$pull": {"likes": _oid(user_id)}}
        )
        return result.modified_count > 0

    async def increment_views(self, post_id: Any) -> None:
        await self.collection.update_one({"_id": _oid(post_id)}, {"$inc": {"view_count": 1}})

    @log_performance("posts.text_search")
    async def text_search(
        self, query: str, filters: Dict[str, Any], sort: Optional[str], skip: int, limit: int
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Full-text search ranked by text score, then by the sort option."""
        text_filters = dict(filters)
        text_filters["$text"] = {"$search": query}
        cursor = (
            self.collection.find(text_filters, {"score": {"$meta": "textScore"}})
            .sort([("score", {"$meta": "textScore"})] + sort_spec(sort))
            .skip(skip)
            .limit(limit)
        )
        docs = await cursor.to_list(length=limit)
        total = await self.collection.count_documents(text_filters)
        return docs, total

    @log_performance("posts.regex_search")
    async def regex_search(self, query: str, limit: int) -> List[Dict[str, Any]]:
        """Published posts whose title, content, excerpt or tags contain `query`."""
        pattern = _contains(query)
        filters = {
            "is_published": True,
            "$or": [{"title": pattern}, {"content": pattern}, {"excerpt": pattern}, {"tags": pattern}],
        }
        cursor = self.collection.find(filters).sort("created_at", DESCENDING).limit(limit)
        return await cursor.to_list(length=limit)

    async def title_suggestions(self, query: str, limit: int) -> List[Dict[str, Any]]:
        cursor = (
            self.collection.find({"is_published": True, "title": _contains(query)}, {"title": 1, "slug": 1})
            .sort("view_count", DESCENDING)
            .limit(limit)
        )
        return await cursor.to_list(length=limit)

    @log_performance("posts.tag_counts")
    async def tag_counts(self, query: Optional[str], limit: int, scan_limit: int) -> List[Tuple[str, int]]:
        """
        Count tag usage over the `scan_limit` most recent published posts.

        Returns:
            List[Tuple[str, int]]: Up to `limit` `(tag, count)` pairs, most used first.
        """
        filters: Dict[str, Any] = {"is_published": True}
        matcher = None
        if query:
            filters["tags"] = _contains(query)
            matcher = re.compile(re.escape(query), re.IGNORECASE)

        counter: Counter = Counter()
        cursor = self.collection.find(filters, {"tags": 1}).sort("created_at", DESCENDING).limit(scan_limit)
        async for doc in cursor:
            for tag in doc.get("tags") or []:
                if matcher is None or matcher.search(tag):
                    counter[tag] += 1
        return counter.most_common(limit)

    async def category_counts(self) -> List[Dict[str, Any]]:
        pipeline = [
            {"$match": {"is_published": True}},
            {"$group": {"_id": "$category", "count": {"$sum": 1}}},
            {"$sort": {"count": -1}},
        ]
        return await self.collection.aggregate(pipeline).to_list(length=None)

    async def stats_for_author(self, author_id: Any) -> Dict[str, int]:
        """Post, view and like totals for one author, split by published state."""
        pipeline = [
            {"$match": {"author": _oid(author_id)}},
            {
                "$group": {
                    "_id": "$is_published",
                    "posts": {"$sum": 1},
                    "views": {"$sum": {"$ifNull": ["$view_count", 0]}},
                    "likes": {"$sum": {"$size": {"$ifNull": ["$likes", []]}}},
                }
            },
        ]
        groups = {bool(row["_id"]): row for row in await self.collection.aggregate(pipeline).to_list(length=None)}
        published = groups.get(True, {})
        drafts = groups.get(False, {})
        return {
            "total_posts": published.get("posts", 0) + drafts.get("posts", 0),
            "published_posts": published.get("posts", 0),
            "drafts": drafts.get("posts", 0),
            "published_views": published.get("views", 0),
            "published_likes": published.get("likes", 0),
            "total_views": published.get("views", 0) + drafts.get("views", 0),
            "total_likes": published.get("likes", 0) + drafts.get("likes", 0),
        }

    async def ids_for_author(self, author_id: Any, published_only: bool = False) -> List[ObjectId]:
        filters: Dict[str, Any] = {"author": _oid(author_id)}
        if published_only:
            filters["is_published"] = True
        return [doc["_id"] async for doc in self.collection.find(filters, {"_id": 1})]

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        return await self.collection.count_documents(filters or {})
