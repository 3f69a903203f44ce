"""
# Database Package

Persistence layer of the InkWell API, built on **Motor** (async MongoDB driver).

## Components

- **`manager`**: the `DatabaseManager` singleton (`db_manager`) owning the client, the connection
  lifecycle and the index set.
- **`user_repository`**, **`post_repository`**, **`comment_repository`**: one repository per
  collection. Route handlers receive them through FastAPI dependencies
  (`inkwell.routes.dependencies`), which lets tests swap in fakes.

## Usage

```python
from inkwell.database import db_manager, PostRepository

await db_manager.connect()
posts = PostRepository(db_manager.get_collection("posts"))
post = await posts.find_by_slug("hello-world")
await db_manager.disconnect()
```
"""

from inkwell.database.comment_repository import CommentRepository
from inkwell.database.manager import (
    COMMENTS_COLLECTION,
    POSTS_COLLECTION,
    USERS_COLLECTION,
    DatabaseManager,
    db_manager,
)
from inkwell.database.post_repository import PostRepository
from inkwell.database.user_repository import UserRepository

__all__ = [
    "COMMENTS_COLLECTION",
    "POSTS_COLLECTION",
    "USERS_COLLECTION",
    "CommentRepository",
    "DatabaseManager",
    "PostRepository",
    "UserRepository",
    "db_manager",
]
