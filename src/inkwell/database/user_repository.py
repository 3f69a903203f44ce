"""
Persistence for the `users` collection.

Every method takes and returns plain documents (snake_case keys, `ObjectId` ids); converting to
API models is the caller's job. Bookmark toggles read the current membership and then apply a
single `$pull` or `$addToSet`, so concurrent toggles by the same user are last-write-wins.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import DESCENDING, ReturnDocument

from inkwell.managers.logging_manager import get_logger
from inkwell.models.user_models import profile_defaults
from inkwell.services.membership import toggle_membership, toggle_operator
from inkwell.utils.logging_utils import log_performance

logger = get_logger(prefix="[User Repository]")

PUBLIC_PROJECTION = {"password": 0}


def _oid(value: Any) -> ObjectId:
    return value if isinstance(value, ObjectId) else ObjectId(str(value))


class UserRepository:
    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def find_by_id(self, user_id: Any, with_password: bool = False) -> Optional[Dict[str, Any]]:
        projection = None if with_password else PUBLIC_PROJECTION
        return await self.collection.find_one({"_id": _oid(user_id)}, projection)

    async def find_by_email(self, email: str, with_password: bool = False) -> Optional[Dict[str, Any]]:
        projection = None if with_password else PUBLIC_PROJECTION
        return await self.collection.find_one({"email": email.strip().lower()}, projection)

    async def find_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        return await self.collection.find_one({"username": username}, PUBLIC_PROJECTION)

    async def find_conflicts(self, email: str, username: str) -> Dict[str, bool]:
        """Report which of `email` and `username` are already registered."""
        existing = await self.collection.find_one(
            {"$or": [{"email": email.lower()}, {"username": username}]}, {"email": 1, "username": 1}
        )
        if not existing:
            return {"email": False, "username": False}
        # A second lookup is needed when the first match only covers one of the two fields
        email_taken = existing.get("email") == email.lower()
        username_taken = existing.get("username") == username
        if not email_taken:
            email_taken = await self.collection.count_documents({"email": email.lower()}, limit=1) > 0
        if not username_taken:
            username_taken = await self.collection.count_documents({"username": username}, limit=1) > 0
        return {"email": email_taken, "username": username_taken}

    async def find_many_by_ids(self, ids: List[Any]) -> Dict[str, Dict[str, Any]]:
        """Load several users at once, keyed by id string."""
        unique = list({str(i) for i in ids if i is not None})
        if not unique:
            return {}
        cursor = self.collection.find({"_id": {"$in": [_oid(i) for i in unique]}}, PUBLIC_PROJECTION)
        return {str(doc["_id"]): doc async for doc in cursor}

    async def create(self, document: Dict[str, Any]) -> Dict[str, Any]:
        result = await self.collection.insert_one(document)
        document["_id"] = result.inserted_id
        logger.info("Created user %s (%s)", document.get("username"), result.inserted_id)
        return document

    async def update_fields(self, user_id: Any, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """`$set` the given fields and return the updated document, or `None` if missing."""
        update = dict(fields)
        update["updated_at"] = datetime.now(timezone.utc)
        return await self.collection.find_one_and_update(
            {"_id": _oid(user_id)},
            {"$set": update},
            projection=PUBLIC_PROJECTION,
            return_document=ReturnDocument.AFTER,
        )

    async def touch_last_login(self, user_id: Any) -> None:
        await self.collection.update_one({"_id": _oid(user_id)}, {"$set": {"last_login": datetime.now(timezone.utc)}})

    async def set_password(self, user_id: Any, password_hash: str) -> None:
        await self.collection.update_one(
            {"_id": _oid(user_id)},
            {"$set": {"password": password_hash, "updated_at": datetime.now(timezone.utc)}},
        )

    async def delete(self, user_id: Any) -> bool:
        result = await self.collection.delete_one({"_id": _oid(user_id)})
        return result.deleted_count > 0

    async def toggle_bookmark(self, user_id: Any, post_id: Any) -> Optional[Tuple[bool, int]]:
        """
        Toggle `post_id` in the user's bookmarks.

        Returns:
            Optional[Tuple[bool, int]]: `(bookmarked, bookmark_count)`, or `None` when the user is gone.
        """
        user = await self.collection.find_one({"_id": _oid(user_id)}, {"bookmarks": 1})
        if user is None:
            return None
        bookmarks, bookmarked = toggle_membership(user.get("bookmarks"), post_id)
        await self.collection.update_one(
            {"_id": _oid(user_id)}, {toggle_operator(bookmarked): {"bookmarks": _oid(post_id)}}
        )
        return bookmarked, len(bookmarks)

    async def remove_bookmark(self, user_id: Any, post_id: Any) -> bool:
        """Remove one bookmark; False when the user had not bookmarked the post."""
        result = await self.collection.update_one(
            {"_id": _oid(user_id), "bookmarks": _oid(post_id)}, {"$pull": {"bookmarks": _oid(post_id)}}
        )
        return result.modified_count > 0

    async def pull_bookmark_everywhere(self, post_id: Any) -> int:
        result = await self.collection.update_many(
            {"bookmarks": _oid(post_id)}, {"$pull": {"bookmarks": _oid(post_id)}}
        )
        return result.modified_count

    @log_performance("users.search")
    async def search(self, query: str, skip: int, limit: int) -> Tuple[List[Dict[str, Any]], int]:
        """Case-insensitive substring match on username or bio."""
        pattern = {"$regex": re.escape(query), "$options": "i"}
        filters = {"$or": [{"username": pattern}, {"bio": pattern}]}
        cursor = self.collection.find(filters, PUBLIC_PROJECTION).sort("created_at", DESCENDING).skip(skip).limit(limit)
        docs = await cursor.to_list(length=limit)
        total = await self.collection.count_documents(filters)
        return docs, total

    async def list(self, skip: int, limit: int) -> Tuple[List[Dict[str, Any]], int]:
        cursor = self.collection.find({}, PUBLIC_PROJECTION).sort("created_at", DESCENDING).skip(skip).limit(limit)
        docs = await cursor.to_list(length=limit)
        total = await self.collection.count_documents({})
        return docs, total

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        return await self.collection.count_documents(filters or {})

    async def backfill_profile_defaults(self) -> int:
        """
        Add missing profile fields to existing users.

        Only absent fields are set, so values users already chose are never overwritten.

        Returns:
            int: Number of users modified.
        """
        defaults = profile_defaults()
        modified = await self.collection.count_documents(
            {"$or": [{field: {"$exists": False}} for field in defaults]}
        )
        for field, default in defaults.items():
            result = await self.collection.update_many({field: {"$exists": False}}, {"$set": {field: default}})
            if result.modified_count:
                logger.info("Backfilled '%s' on %d users", field, result.modified_count)
        return modified
