import os

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-signing-key-for-inkwell-suite")
os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("CACHE_BACKEND", "memory")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from datetime import datetime, timezone
from unittest.mock import AsyncMock

from bson import ObjectId
import httpx
import pytest

from inkwell.database import CommentRepository, PostRepository, UserRepository
from inkwell.main import app
from inkwell.managers.cache_manager import response_cache
from inkwell.routes.auth.services import create_access_token
from inkwell.routes.dependencies import get_comment_repository, get_post_repository, get_user_repository


def make_user(role="author", **overrides):
    now = datetime.now(timezone.utc)
    user = {
        "_id": ObjectId(),
        "username": f"user_{str(ObjectId())[-6:]}",
        "email": "someone@example.com",
        "role": role,
        "bio": "",
        "avatar": "",
        "bookmarks": [],
        "is_verified": False,
        "created_at": now,
        "updated_at": now,
    }
    user.update(overrides)
    return user


def make_post(author_id, **overrides):
    now = datetime.now(timezone.utc)
    post = {
        "_id": ObjectId(),
        "title": "Hello World",
        "slug": "hello-world",
        "content": "Some content for the hello world post.",
        "excerpt": "Some content...",
        "tags": ["intro"],
        "category": "Technology",
        "author": author_id,
        "likes": [],
        "is_published": True,
        "is_featured": False,
        "read_time": 1,
        "view_count": 0,
        "created_at": now,
        "updated_at": now,
    }
    post.update(overrides)
    return post


def make_comment(post_id, author_id, parent=None, **overrides):
    now = datetime.now(timezone.utc)
    comment = {
        "_id": ObjectId(),
        "content": "Nice post!",
        "post": post_id,
        "author": author_id,
        "parent_comment": parent,
        "likes": [],
        "is_edited": False,
        "created_at": now,
        "updated_at": now,
    }
    comment.update(overrides)
    return comment


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user['_id'])}"}


@pytest.fixture
def users_repo():
    repo = AsyncMock(spec=UserRepository)
    repo.find_by_id.return_value = None
    repo.find_many_by_ids.return_value = {}
    repo.find_conflicts.return_value = {"email": False, "username": False}
    return repo


@pytest.fixture
def posts_repo():
    repo = AsyncMock(spec=PostRepository)
    repo.slug_exists.return_value = False
    repo.find_many_by_ids.return_value = {}
    repo.list_posts.return_value = ([], 0)
    return repo


@pytest.fixture
def comments_repo():
    repo = AsyncMock(spec=CommentRepository)
    repo.count_for_posts.return_value = {}
    repo.replies_for.return_value = {}
    repo.reply_counts.return_value = {}
    return repo


@pytest.fixture
async def client(users_repo, posts_repo, comments_repo):
    app.dependency_overrides[get_user_repository] = lambda: users_repo
    app.dependency_overrides[get_post_repository] = lambda: posts_repo
    app.dependency_overrides[get_comment_repository] = lambda: comments_repo
    await response_cache.clear()

    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()
    await response_cache.clear()
