import io

from bson import ObjectId
from fastapi import UploadFile
import pytest
from starlette.datastructures import Headers

from conftest import auth_headers, make_post, make_user
from inkwell.services.avatar_storage import AvatarTooLargeError, LocalAvatarStorage, UnsupportedAvatarTypeError


def users_by_id(*docs):
    """`find_by_id` side effect serving several users."""
    index = {str(doc["_id"]): doc for doc in docs}

    async def find_by_id(user_id, with_password=False):
        return index.get(str(user_id))

    return find_by_id


# --- Users ---


@pytest.mark.asyncio
async def test_public_profile_hides_private_fields(client, users_repo, posts_repo):
    user = make_user(username="alice", email="alice@example.com", location="Lisbon")
    users_repo.find_by_username.return_value = user

    response = await client.get("/api/users/alice")

    assert response.status_code == 200
    profile = response.json()["user"]
    assert profile["username"] == "alice"
    assert profile["email"] is None
    assert profile["location"] == "Lisbon"
    assert profile["privacySettings"] is None
    assert profile["defaultAvatar"].startswith("data:image/svg+xml;base64,")


@pytest.mark.asyncio
async def test_owner_sees_own_private_fields(client, users_repo):
    user = make_user(username="alice", email="alice@example.com")
    users_repo.find_by_username.return_value = user
    users_repo.find_by_id.return_value = user

    response = await client.get("/api/users/alice", headers=auth_headers(user))

    assert response.json()["user"]["email"] == "alice@example.com"


@pytest.mark.asyncio
async def test_bookmark_route_only_for_self(client, users_repo):
    me, other = make_user(), make_user()
    users_repo.find_by_id.side_effect = users_by_id(me, other)

    response = await client.post(f"/api/users/{other['_id']}/bookmark/{ObjectId()}", headers=auth_headers(me))

    assert response.status_code == 403
    assert response.json() == {"message": "Not authorized"}


@pytest.mark.asyncio
async def test_bookmark_route_toggles(client, users_repo, posts_repo):
    me = make_user()
    users_repo.find_by_id.return_value = me
    post = make_post(ObjectId())
    posts_repo.find_by_id.return_value = post
    users_repo.toggle_bookmark.return_value = (True, 1)

    response = await client.post(f"/api/users/{me['_id']}/bookmark/{post['_id']}", headers=auth_headers(me))

    assert response.json() == {"message": "Post added to bookmarks", "bookmarked": True, "bookmarkCount": 1}


@pytest.mark.asyncio
async def test_public_stats_exclude_drafts(client, users_repo, posts_repo, comments_repo):
    author = make_user()
    users_repo.find_by_id.return_value = author
    posts_repo.stats_for_author.return_value = {
        "total_posts": 5,
        "published_posts": 3,
        "drafts": 2,
        "published_views": 30,
        "published_likes": 4,
        "total_views": 35,
        "total_likes": 6,
    }
    posts_repo.ids_for_author.return_value = [ObjectId()]
    comments_repo.count_for_posts.return_value = {"x": 7}

    public = await client.get(f"/api/users/{author['_id']}/stats")
    private = await client.get(f"/api/users/{author['_id']}/stats", headers=auth_headers(author))

    assert public.json() == {
        "totalPosts": 3,
        "publishedPosts": 3,
        "totalViews": 30,
        "totalLikes": 4,
        "totalComments": 7,
    }
    assert private.json()["drafts"] == 2
    assert private.json()["totalPosts"] == 5
    posts_repo.ids_for_author.assert_awaited_with(author["_id"], published_only=False)


@pytest.mark.asyncio
async def test_avatar_upload_rejects_wrong_type(client, users_repo):
    me = make_user()
    users_repo.find_by_id.return_value = me

    response = await client.post(
        f"/api/users/{me['_id']}/upload-avatar",
        files={"avatar": ("notes.txt", b"hello", "text/plain")},
        headers=auth_headers(me),
    )

    assert response.status_code == 400
    assert response.json() == {"message": "Only JPEG, PNG, GIF and WebP images are allowed"}


def _upload(content, content_type):
    return UploadFile(file=io.BytesIO(content), filename="avatar", headers=Headers({"content-type": content_type}))


@pytest.mark.asyncio
async def test_local_avatar_storage(tmp_path):
    storage = LocalAvatarStorage(root=str(tmp_path), base_url="/media", max_bytes=10)

    url = await storage.save("user1", _upload(b"\x89PNG", "image/png"))

    assert url.startswith("/media/avatars/user1-") and url.endswith(".png")
    assert len(list((tmp_path / "avatars").iterdir())) == 1

    with pytest.raises(AvatarTooLargeError):
        await storage.save("user1", _upload(b"x" * 11, "image/png"))
    with pytest.raises(UnsupportedAvatarTypeError):
        await storage.save("user1", _upload(b"x", "application/pdf"))


# --- Search ---


@pytest.mark.asyncio
async def test_search_requires_two_characters(client, users_repo):
    response = await client.get("/api/search/users", params={"query": "a"})

    assert response.status_code == 400
    assert response.json() == {"message": "Search query must be at least 2 characters long"}
    users_repo.search.assert_not_awaited()


@pytest.mark.asyncio
async def test_post_search_uses_text_index_for_queries(client, posts_repo):
    posts_repo.text_search.return_value = ([], 0)

    await client.get("/api/search/posts", params={"q": "fastapi", "tag": "Python"})

    query, filters, sort, skip, limit = posts_repo.text_search.call_args[0]
    assert query == "fastapi"
    assert filters == {"is_published": True, "tags": "python"}
    posts_repo.list_posts.assert_not_awaited()


@pytest.mark.asyncio
async def test_global_search_splits_limit(client, users_repo, posts_repo):
    posts_repo.regex_search.return_value = [make_post(ObjectId())]
    users_repo.search.return_value = ([make_user()], 1)

    response = await client.get("/api/search/global", params={"query": "hello", "limit": 5})

    body = response.json()
    assert body["totalResults"] == 2
    posts_repo.regex_search.assert_awaited_once_with("hello", 3)
    users_repo.search.assert_awaited_once_with("hello", 0, 3)


@pytest.mark.asyncio
async def test_suggestions_short_query_is_empty(client, posts_repo):
    response = await client.get("/api/search/suggestions", params={"query": "h"})

    assert response.json() == {"suggestions": []}
    posts_repo.title_suggestions.assert_not_awaited()


@pytest.mark.asyncio
async def test_suggestions_for_all_types(client, users_repo, posts_repo):
    posts_repo.title_suggestions.return_value = [{"title": "Hello World", "slug": "hello-world"}]
    users_repo.search.return_value = ([make_user(username="hello_kitty")], 1)
    posts_repo.tag_counts.return_value = [("hello", 3)]

    response = await client.get("/api/search/suggestions", params={"query": "hello", "type": "all"})

    assert response.json()["suggestions"] == [
        {"type": "post", "title": "Hello World", "slug": "hello-world"},
        {"type": "user", "title": "hello_kitty", "username": "hello_kitty"},
        {"type": "tag", "title": "hello", "tag": "hello"},
    ]


@pytest.mark.asyncio
async def test_popular_tags(client, posts_repo):
    posts_repo.tag_counts.return_value = [("python", 4), ("fastapi", 2)]

    response = await client.get("/api/search/tags", params={"limit": 2})

    assert response.json() == {"tags": [{"tag": "python", "count": 4}, {"tag": "fastapi", "count": 2}]}


# --- Admin ---


@pytest.mark.asyncio
async def test_admin_stats(client, users_repo, posts_repo, comments_repo):
    admin = make_user(role="admin")
    users_repo.find_by_id.return_value = admin
    users_repo.count.return_value = 4
    posts_repo.count.side_effect = [10, 7]
    comments_repo.count.return_value = 21

    response = await client.get("/api/admin/stats", headers=auth_headers(admin))

    assert response.json() == {"totalUsers": 4, "totalPosts": 10, "publishedPosts": 7, "totalComments": 21}


@pytest.mark.asyncio
async def test_admin_cannot_delete_self(client, users_repo):
    admin = make_user(role="admin")
    users_repo.find_by_id.return_value = admin

    response = await client.delete(f"/api/admin/users/{admin['_id']}", headers=auth_headers(admin))

    assert response.status_code == 400
    users_repo.delete.assert_not_awaited()


@pytest.mark.asyncio
async def test_admin_user_delete_cascades(client, users_repo, posts_repo, comments_repo):
    admin, target = make_user(role="admin"), make_user()
    users_repo.find_by_id.side_effect = users_by_id(admin, target)
    written = [ObjectId(), ObjectId()]
    posts_repo.delete_by_author.return_value = written
    comments_repo.delete_for_posts.return_value = 5
    comments_repo.delete_by_author.return_value = 2

    response = await client.delete(f"/api/admin/users/{target['_id']}", headers=auth_headers(admin))

    assert response.json() == {"message": "User deleted"}
    comments_repo.delete_for_posts.assert_awaited_once_with(written)
    comments_repo.delete_by_author.assert_awaited_once_with(target["_id"])
    assert users_repo.pull_bookmark_everywhere.await_count == 2
    users_repo.delete.assert_awaited_once_with(target["_id"])


@pytest.mark.asyncio
async def test_admin_remove_missing_bookmark(client, users_repo):
    admin, target = make_user(role="admin"), make_user()
    users_repo.find_by_id.side_effect = users_by_id(admin, target)
    users_repo.remove_bookmark.return_value = False

    response = await client.delete(
        f"/api/admin/users/{target['_id']}/bookmark/{ObjectId()}", headers=auth_headers(admin)
    )

    assert response.status_code == 404
    assert response.json() == {"message": "Bookmark not found for this user on this post"}


@pytest.mark.asyncio
async def test_profile_update_rejects_null_theme(client, users_repo):
    me = make_user()
    users_repo.find_by_id.return_value = me

    response = await client.put(f"/api/users/{me['_id']}", json={"profileTheme": None}, headers=auth_headers(me))

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "profileTheme"
    users_repo.update_fields.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{"role": None}, {"username": None}, {"privacySettings": None}])
async def test_admin_user_update_rejects_null(client, users_repo, body):
    admin, target = make_user(role="admin"), make_user()
    users_repo.find_by_id.side_effect = users_by_id(admin, target)

    response = await client.put(f"/api/admin/users/{target['_id']}", json=body, headers=auth_headers(admin))

    assert response.status_code == 400
    assert response.json()["message"] == "Validation failed"
    users_repo.update_fields.assert_not_awaited()


@pytest.mark.asyncio
async def test_admin_user_update_requires_valid_email(client, users_repo):
    admin, target = make_user(role="admin"), make_user()
    users_repo.find_by_id.side_effect = users_by_id(admin, target)

    response = await client.put(
        f"/api/admin/users/{target['_id']}", json={"email": "not-an-email"}, headers=auth_headers(admin)
    )

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "email"
    users_repo.update_fields.assert_not_awaited()


@pytest.mark.asyncio
async def test_admin_post_update_rejects_null_flags(client, users_repo, posts_repo):
    admin = make_user(role="admin")
    users_repo.find_by_id.return_value = admin
    post = make_post(ObjectId())
    posts_repo.find_by_id.return_value = post

    response = await client.put(
        f"/api/admin/posts/{post['_id']}", json={"isPublished": None, "viewCount": None}, headers=auth_headers(admin)
    )

    assert response.status_code == 400
    assert {error["field"] for error in response.json()["errors"]} == {"isPublished", "viewCount"}
    posts_repo.update_fields.assert_not_awaited()
