from unittest.mock import AsyncMock, MagicMock

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
import pytest

from inkwell.database import CommentRepository, PostRepository, UserRepository
from inkwell.database.comment_repository import cascade_filter
from inkwell.database.post_repository import sort_spec
from inkwell.services.membership import is_member, toggle_membership


@pytest.fixture
def collection():
    mock = MagicMock()
    for method in (
        "find_one",
        "update_one",
        "update_many",
        "delete_many",
        "insert_one",
        "count_documents",
        "find_one_and_update",
    ):
        setattr(mock, method, AsyncMock())
    return mock


def test_is_member_compares_ids_as_strings():
    user_id = ObjectId()
    assert is_member([user_id], str(user_id))
    assert not is_member([ObjectId()], user_id)
    assert not is_member(None, user_id)


def test_toggle_membership_adds_then_removes():
    actor = ObjectId()
    other = ObjectId()

    members, now_member = toggle_membership([other], actor)
    assert (members, now_member) == ([other, actor], True)

    members, now_member = toggle_membership(members, str(actor))
    assert (members, now_member) == ([other], False)


def test_cascade_filter_matches_comment_and_direct_replies():
    comment_id = ObjectId()
    assert cascade_filter(str(comment_id)) == {"$or": [{"_id": comment_id}, {"parent_comment": comment_id}]}


def test_sort_spec():
    assert sort_spec("latest") == [("created_at", DESCENDING)]
    assert sort_spec("popular") == [("view_count", DESCENDING), ("created_at", DESCENDING)]
    assert sort_spec("oldest") == [("created_at", ASCENDING)]
    assert sort_spec(None) == sort_spec("latest")


@pytest.mark.asyncio
async def test_post_like_toggles_on_then_off(collection):
    repo = PostRepository(collection)
    post_id, user_id = ObjectId(), ObjectId()

    collection.find_one.return_value = {"_id": post_id, "likes": []}
    assert await repo.toggle_like(post_id, user_id) == (True, 1)
    collection.update_one.assert_awaited_with({"_id": post_id}, {"$addToSet": {"likes": user_id}})

    collection.find_one.return_value = {"_id": post_id, "likes": [user_id]}
    assert await repo.toggle_like(post_id, user_id) == (False, 0)
    collection.update_one.assert_awaited_with({"_id": post_id}, {"$pull": {"likes": user_id}})


@pytest.mark.asyncio
async def test_post_like_on_missing_post(collection):
    collection.find_one.return_value = None
    assert await PostRepository(collection).toggle_like(ObjectId(), ObjectId()) is None
    collection.update_one.assert_not_awaited()


@pytest.mark.asyncio
async def test_slug_exists_excludes_current_post(collection):
    post_id = ObjectId()
    collection.count_documents.return_value = 0

    assert await PostRepository(collection).slug_exists("hello", exclude_id=post_id) is False
    collection.count_documents.assert_awaited_once_with({"slug": "hello", "_id": {"$ne": post_id}}, limit=1)


@pytest.mark.asyncio
async def test_bookmark_toggle(collection):
    repo = UserRepository(collection)
    user_id, post_id = ObjectId(), ObjectId()

    collection.find_one.return_value = {"_id": user_id, "bookmarks": [ObjectId()]}
    assert await repo.toggle_bookmark(user_id, post_id) == (True, 2)

    collection.find_one.return_value = {"_id": user_id, "bookmarks": [post_id]}
    assert await repo.toggle_bookmark(user_id, post_id) == (False, 0)
    collection.update_one.assert_awaited_with({"_id": user_id}, {"$pull": {"bookmarks": post_id}})


@pytest.mark.asyncio
async def test_deleting_a_post_pulls_every_bookmark(collection):
    post_id = ObjectId()
    collection.update_many.return_value = MagicMock(modified_count=4)

    assert await UserRepository(collection).pull_bookmark_everywhere(post_id) == 4
    collection.update_many.assert_awaited_once_with({"bookmarks": post_id}, {"$pull": {"bookmarks": post_id}})


@pytest.mark.asyncio
async def test_comment_delete_uses_cascade_filter(collection):
    comment_id = ObjectId()
    collection.delete_many.return_value = MagicMock(deleted_count=3)

    assert await CommentRepository(collection).delete_with_replies(comment_id) == 3
    collection.delete_many.assert_awaited_once_with(cascade_filter(comment_id))


@pytest.mark.asyncio
async def test_comment_create_document(collection):
    post_id, author_id, parent_id = ObjectId(), ObjectId(), ObjectId()
    collection.insert_one.return_value = MagicMock(inserted_id=ObjectId())

    created = await CommentRepository(collection).create(str(post_id), author_id, "Reply", str(parent_id))

    assert created["post"] == post_id
    assert created["parent_comment"] == parent_id
    assert created["likes"] == []
    assert created["is_edited"] is False
    assert "_id" in created


@pytest.mark.asyncio
async def test_comment_edit_sets_edited_flag(collection):
    comment_id = ObjectId()
    await CommentRepository(collection).update_content(comment_id, "New text")

    filters, update = collection.find_one_and_update.call_args[0]
    assert filters == {"_id": comment_id}
    assert update["$set"]["content"] == "New text"
    assert update["$set"]["is_edited"] is True
    assert update["$set"]["edited_at"] is not None


@pytest.mark.asyncio
async def test_backfill_only_sets_missing_fields(collection):
    collection.count_documents.return_value = 2
    collection.update_many.return_value = MagicMock(modified_count=2)

    assert await UserRepository(collection).backfill_profile_defaults() == 2
    for call in collection.update_many.await_args_list:
        filters, update = call[0]
        (field,) = filters.keys()
        assert filters[field] == {"$exists": False}
        assert list(update["$set"]) == [field]
