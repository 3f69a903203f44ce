from unittest.mock import patch

from bson import ObjectId
from pymongo.errors import DuplicateKeyError
import pytest

from conftest import auth_headers, make_comment, make_post, make_user

NEW_POST = {
    "title": "Hello World",
    "content": "This is the body of the hello world post.",
    "category": "Technology",
    "tags": ["Intro", "intro", "Python"],
    "isPublished": True,
}


@pytest.fixture
def author(users_repo):
    user = make_user()
    users_repo.find_by_id.return_value = user
    return user


@pytest.fixture
def stored_posts(posts_repo):
    """Route `posts_repo.create` into a dict so tests can inspect what was written."""
    store = {}

    async def create(document):
        document = {**document, "_id": ObjectId(), "likes": [], "view_count": 0}
        store[document["slug"]] = document
        return document

    async def slug_exists(slug, exclude_id=None):
        return slug in store

    posts_repo.create.side_effect = create
    posts_repo.slug_exists.side_effect = slug_exists
    return store


@pytest.mark.asyncio
async def test_create_post_derives_fields(client, author, stored_posts):
    response = await client.post("/api/posts", json=NEW_POST, headers=auth_headers(author))

    assert response.status_code == 201
    post = response.json()["post"]
    assert post["slug"] == "hello-world"
    assert post["tags"] == ["intro", "python"]
    assert post["readTime"] == 1
    assert post["excerpt"].endswith("...")
    assert post["seoTitle"] == "Hello World"
    assert post["isPublished"] is True
    assert post["author"]["id"] == str(author["_id"])
    assert stored_posts["hello-world"]["author"] == author["_id"]


@pytest.mark.asyncio
async def test_same_title_gets_numbered_slug(client, author, stored_posts):
    first = await client.post("/api/posts", json=NEW_POST, headers=auth_headers(author))
    second = await client.post("/api/posts", json=NEW_POST, headers=auth_headers(author))

    assert first.json()["post"]["slug"] == "hello-world"
    assert second.json()["post"]["slug"] == "hello-world-1"


@pytest.mark.asyncio
async def test_create_retries_once_on_slug_race(client, author, posts_repo):
    created = make_post(author["_id"], slug="hello-world")
    posts_repo.create.side_effect = [DuplicateKeyError("E11000"), created]

    response = await client.post("/api/posts", json=NEW_POST, headers=auth_headers(author))

    assert response.status_code == 201
    assert posts_repo.create.await_count == 2


@pytest.mark.asyncio
async def test_create_gives_up_after_second_slug_race(client, author, posts_repo):
    posts_repo.create.side_effect = DuplicateKeyError("E11000")

    response = await client.post("/api/posts", json=NEW_POST, headers=auth_headers(author))

    assert response.status_code == 400
    assert response.json() == {"message": "Post with this slug already exists"}


@pytest.mark.asyncio
async def test_create_post_validation(client, author):
    response = await client.post(
        "/api/posts",
        json={"title": "", "content": "short", "category": "Cooking"},
        headers=auth_headers(author),
    )

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Validation failed"
    assert {"title", "content", "category"} <= {error["field"] for error in body["errors"]}


@pytest.mark.asyncio
async def test_create_strips_script_tags(client, author, stored_posts):
    payload = {**NEW_POST, "content": "Safe text <script>alert(1)</script> and <strong>bold</strong>"}

    response = await client.post("/api/posts", json=payload, headers=auth_headers(author))

    assert response.status_code == 201
    content = stored_posts["hello-world"]["content"]
    assert "<script>" not in content
    assert "<strong>bold</strong>" in content


@pytest.mark.asyncio
async def test_draft_is_hidden_from_others(client, users_repo, posts_repo):
    owner = make_user()
    draft = make_post(owner["_id"], is_published=False, slug="secret-draft")
    posts_repo.find_by_slug.return_value = draft

    anonymous = await client.get("/api/posts/secret-draft")
    assert anonymous.status_code == 404
    assert anonymous.json() == {"message": "Post not found"}

    stranger = make_user()
    users_repo.find_by_id.return_value = stranger
    other = await client.get("/api/posts/secret-draft", headers=auth_headers(stranger))
    assert other.status_code == 404

    users_repo.find_by_id.return_value = owner
    with patch("inkwell.routes.posts.view_counter") as view_counter:
        own = await client.get("/api/posts/secret-draft", headers=auth_headers(owner))
    assert own.status_code == 200
    assert own.json()["post"]["slug"] == "secret-draft"
    view_counter.record.assert_called_once()


@pytest.mark.asyncio
async def test_reading_a_post_counts_a_view(client, users_repo, posts_repo):
    author = make_user(bio="Writes things")
    post = make_post(author["_id"])
    posts_repo.find_by_slug.return_value = post
    users_repo.find_by_id.return_value = author

    with patch("inkwell.routes.posts.view_counter") as view_counter:
        response = await client.get("/api/posts/Hello-World")

    assert response.status_code == 200
    posts_repo.find_by_slug.assert_awaited_once_with("hello-world")
    view_counter.record.assert_called_once_with(post["_id"], posts_repo.increment_views)
    assert response.json()["post"]["author"]["bio"] == "Writes things"


@pytest.mark.asyncio
async def test_like_toggle(client, author, posts_repo):
    post = make_post(ObjectId())
    posts_repo.find_by_id.return_value = post
    posts_repo.toggle_like.side_effect = [(True, 1), (False, 0)]

    liked = await client.post(f"/api/posts/{post['_id']}/like", headers=auth_headers(author))
    unliked = await client.post(f"/api/posts/{post['_id']}/like", headers=auth_headers(author))

    assert liked.json() == {"message": "Post liked", "liked": True, "likeCount": 1}
    assert unliked.json() == {"message": "Post unliked", "liked": False, "likeCount": 0}
    posts_repo.toggle_like.assert_awaited_with(post["_id"], author["_id"])


@pytest.mark.asyncio
async def test_invalid_id_is_rejected(client, author):
    response = await client.post("/api/posts/not-an-id/like", headers=auth_headers(author))

    assert response.status_code == 400
    assert response.json() == {"message": "Invalid ID format"}


@pytest.mark.asyncio
async def test_only_author_or_admin_may_update(client, users_repo, posts_repo):
    post = make_post(ObjectId())
    posts_repo.find_by_id.return_value = post
    stranger = make_user()
    users_repo.find_by_id.return_value = stranger

    response = await client.put(
        f"/api/posts/{post['_id']}", json={"title": "Taken over"}, headers=auth_headers(stranger)
    )

    assert response.status_code == 403
    posts_repo.update_fields.assert_not_awaited()


@pytest.mark.asyncio
async def test_title_change_regenerates_slug(client, author, posts_repo):
    post = make_post(author["_id"])
    posts_repo.find_by_id.return_value = post
    posts_repo.update_fields.side_effect = lambda post_id, changes: {**post, **changes}

    response = await client.put(
        f"/api/posts/{post['_id']}", json={"title": "A New Title"}, headers=auth_headers(author)
    )

    assert response.status_code == 200
    changes = posts_repo.update_fields.call_args[0][1]
    assert changes["slug"] == "a-new-title"
    assert changes["seo_title"] == "A New Title"
    posts_repo.slug_exists.assert_awaited_with("a-new-title", post["_id"])


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["category", "title", "content", "tags", "isPublished"])
async def test_update_rejects_null_for_required_fields(client, author, posts_repo, field):
    post = make_post(author["_id"])
    posts_repo.find_by_id.return_value = post

    response = await client.put(f"/api/posts/{post['_id']}", json={field: None}, headers=auth_headers(author))

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Validation failed"
    assert [error["field"] for error in body["errors"]] == [field]
    posts_repo.update_fields.assert_not_awaited()


@pytest.mark.asyncio
async def test_update_accepts_empty_excerpt(client, author, posts_repo):
    post = make_post(author["_id"], excerpt="Old summary")
    posts_repo.find_by_id.return_value = post
    posts_repo.update_fields.side_effect = lambda post_id, changes: {**post, **changes}

    response = await client.put(f"/api/posts/{post['_id']}", json={"excerpt": ""}, headers=auth_headers(author))

    assert response.status_code == 200
    assert posts_repo.update_fields.call_args[0][1]["excerpt"] == ""


@pytest.mark.asyncio
async def test_delete_post_cascades(client, author, posts_repo, comments_repo, users_repo):
    post = make_post(author["_id"])
    posts_repo.find_by_id.return_value = post
    comments_repo.delete_for_post.return_value = 3
    users_repo.pull_bookmark_everywhere.return_value = 2

    response = await client.delete(f"/api/posts/{post['_id']}", headers=auth_headers(author))

    assert response.status_code == 200
    assert response.json() == {"message": "Post deleted successfully"}
    posts_repo.delete.assert_awaited_once_with(post["_id"])
    comments_repo.delete_for_post.assert_awaited_once_with(post["_id"])
    users_repo.pull_bookmark_everywhere.assert_awaited_once_with(post["_id"])


@pytest.mark.asyncio
async def test_list_posts_pagination_envelope(client, users_repo, posts_repo, comments_repo):
    author = make_user()
    docs = [make_post(author["_id"], slug=f"post-{i}") for i in range(2)]
    posts_repo.list_posts.return_value = (docs, 12)
    users_repo.find_many_by_ids.return_value = {str(author["_id"]): author}
    comments_repo.count_for_posts.return_value = {str(docs[0]["_id"]): 4}

    response = await client.get("/api/posts", params={"page": 2, "limit": 5, "category": "Technology"})

    assert response.status_code == 200
    body = response.json()
    assert body["pagination"] == {
        "currentPage": 2,
        "totalPages": 3,
        "totalPosts": 12,
        "hasNextPage": True,
        "hasPrevPage": True,
    }
    assert body["posts"][0]["commentCount"] == 4
    assert "content" not in body["posts"][0] or body["posts"][0]["content"] is None
    filters, sort, skip, limit = posts_repo.list_posts.call_args[0]
    assert filters == {"is_published": True, "category": "Technology"}
    assert (sort, skip, limit) == ("latest", 5, 5)


@pytest.mark.asyncio
async def test_unknown_author_filter_yields_empty_page(client, users_repo, posts_repo):
    users_repo.find_by_username.return_value = None

    response = await client.get("/api/posts", params={"author": "nobody"})

    assert response.status_code == 200
    assert response.json()["posts"] == []
    posts_repo.list_posts.assert_not_awaited()


@pytest.mark.asyncio
async def test_post_listing_is_cached(client, posts_repo):
    first = await client.get("/api/posts")
    second = await client.get("/api/posts")

    assert first.headers["X-Cache"] == "MISS"
    assert second.headers["X-Cache"] == "HIT"
    assert posts_repo.list_posts.await_count == 1


@pytest.mark.asyncio
async def test_post_comments_embed_replies(client, users_repo, posts_repo, comments_repo):
    post = make_post(ObjectId())
    top = make_comment(post["_id"], ObjectId())
    reply = make_comment(post["_id"], ObjectId(), parent=top["_id"], content="Agreed")
    posts_repo.find_by_id.return_value = post
    comments_repo.list_top_level.return_value = ([top], 1)
    comments_repo.replies_for.return_value = {str(top["_id"]): [reply]}

    response = await client.get(f"/api/posts/{post['_id']}/comments")

    assert response.status_code == 200
    comment = response.json()["comments"][0]
    assert comment["replyCount"] == 1
    assert comment["replies"][0]["content"] == "Agreed"
    assert comment["replies"][0]["parentComment"] == str(top["_id"])
