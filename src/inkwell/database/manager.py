"""
# Database Management Module

Core MongoDB infrastructure for the InkWell API. `DatabaseManager` owns the **Motor** client,
the connection lifecycle and the index set the repositories rely on.

## Architecture Overview

```
┌──────────────┐      ┌───────────────────────────────┐
│ Repositories │─────▶│        DatabaseManager        │
│ (users,      │      │          (Singleton)          │
│  posts,      │      └──────────────┬────────────────┘
│  comments)   │                     │
└──────────────┘      ┌──────────────▼──────────────┐
                      │      Connection Pool        │
                      │  (Motor/PyMongo Internal)   │
                      └──────────────┬──────────────┘
                                     ▼
                                  MongoDB
```

## Key Features

### 1. Connection Lifecycle
- **Async initialization** during application startup (`connect()`), with up to three attempts and
  exponential backoff (1s, 2s).
- **Graceful shutdown** (`disconnect()`).
- **Health checks** (`health_check()`) using a lightweight `ping`, used by `GET /api/health`.

### 2. Index Management
`create_indexes()` is idempotent and runs at startup and from the `inkwell-admin create-indexes`
command:

| Collection | Indexes |
|------------|---------|
| `posts` | `slug` (unique), `(author, is_published)`, `(is_published, created_at)`, `(is_published, view_count)`, `(category, is_published)`, `(tags, is_published)`, text `(title, content)` |
| `users` | `email` (unique), `username` (unique), `role`, `created_at`, `is_verified`, text `(username, bio)` |
| `comments` | `(post, created_at)`, `(author, created_at)`, `(parent_comment, created_at)` |

### 3. Observability
Three loggers: `[DATABASE]` for operations, `[DB_PERFORMANCE]` for timings and `[DB_HEALTH]`
for health checks.

## Module Attributes

Attributes:
    db_logger (Logger): Logger for database operations (`[DATABASE]`).
    perf_logger (Logger): Logger for performance metrics (`[DB_PERFORMANCE]`).
    health_logger (Logger): Logger for health checks (`[DB_HEALTH]`).
"""

import asyncio
import time
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, TEXT
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

from inkwell.config import settings
from inkwell.managers.logging_manager import get_logger

db_logger = get_logger(prefix="[DATABASE]")
perf_logger = get_logger(prefix="[DB_PERFORMANCE]")
health_logger = get_logger(prefix="[DB_HEALTH]")

USERS_COLLECTION = "users"
POSTS_COLLECTION = "posts"
COMMENTS_COLLECTION = "comments"


class DatabaseManager:
    """
    Manages the MongoDB connection and collection access.

    Used as a singleton via the `db_manager` instance exported by `inkwell.database`.

    Attributes:
        client (Optional[AsyncIOMotorClient]): Motor client, `None` until `connect()`.
        database (Optional[AsyncIOMotorDatabase]): Selected database, `None` until `connect()`.
    """

    def __init__(self):
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self._connection_retries = 3

    async def connect(self):
        """
        Establish the MongoDB connection with exponential backoff.

        Credentials from `MONGODB_USERNAME`/`MONGODB_PASSWORD` are injected into the connection
        string when both are configured.

        Raises:
            ServerSelectionTimeoutError | ConnectionFailure: When every attempt fails.
        """
        start_time = time.time()
        db_logger.info("Starting MongoDB connection process")

        for attempt in range(self._connection_retries):
            attempt_start = time.time()
            try:
                db_logger.info("Connection attempt %d/%d to MongoDB", attempt + 1, self._connection_retries)

                if settings.MONGODB_USERNAME and settings.MONGODB_PASSWORD:
                    connection_string = (
                        f"mongodb://{settings.MONGODB_USERNAME}:"
                        f"{settings.MONGODB_PASSWORD.get_secret_value()}@"
                        f"{settings.MONGODB_URL.replace('mongodb://', '')}"
                    )
                    db_logger.debug("Using authenticated connection to MongoDB")
                else:
                    connection_string = settings.MONGODB_URL
                    db_logger.debug("Using unauthenticated connection to MongoDB")

                db_logger.info(
                    "MongoDB connection config - Database: %s, ServerTimeout: %dms, ConnTimeout: %dms",
                    settings.MONGODB_DATABASE,
                    settings.MONGODB_SERVER_SELECTION_TIMEOUT,
                    settings.MONGODB_CONNECTION_TIMEOUT,
                )

                self.client = AsyncIOMotorClient(
                    connection_string,
                    serverSelectionTimeoutMS=settings.MONGODB_SERVER_SELECTION_TIMEOUT,
                    connectTimeoutMS=settings.MONGODB_CONNECTION_TIMEOUT,
                    maxPoolSize=50,
                    minPoolSize=5,
                    tz_aware=True,
                )
                self.database = self.client[settings.MONGODB_DATABASE]

                ping_start = time.time()
                await self.client.admin.command("ping")
                ping_duration = time.time() - ping_start

                perf_logger.info(
                    "MongoDB connection established successfully in %.3fs (ping: %.3fs)",
                    time.time() - start_time,
                    ping_duration,
                )
                db_logger.info("Successfully connected to MongoDB database: %s", settings.MONGODB_DATABASE)
                return

            except (ServerSelectionTimeoutError, ConnectionFailure) as e:
                perf_logger.warning(
                    "Connection attempt %d failed after %.3fs", attempt + 1, time.time() - attempt_start
                )
                db_logger.warning(
                    "Failed to connect to MongoDB (attempt %d/%d): %s", attempt + 1, self._connection_retries, e
                )
                if attempt == self._connection_retries - 1:
                    db_logger.error("All connection attempts failed after %.3fs", time.time() - start_time)
                    raise

                backoff_time = 2**attempt
                db_logger.info("Waiting %.1fs before retry (exponential backoff)", backoff_time)
                await asyncio.sleep(backoff_time)

    async def disconnect(self):
        """Close the MongoDB client if one is open."""
        start_time = time.time()
        db_logger.info("Starting MongoDB disconnection process")

        if self.client:
            self.client.close()
            self.client = None
            self.database = None
            perf_logger.info("MongoDB disconnection completed in %.3fs", time.time() - start_time)
            db_logger.info("Successfully disconnected from MongoDB")
        else:
            db_logger.warning("Disconnect called but no active MongoDB connection found")

    async def health_check(self) -> bool:
        """
        Verify the connection with a `ping`.

        Returns:
            bool: `True` when MongoDB answered, `False` otherwise (never raises).
        """
        start_time = time.time()
        try:
            if self.client is None:
                health_logger.warning("Health check failed: No database client available")
                return False

            await self.client.admin.command("ping")
            perf_logger.debug("Database health check completed in %.3fs", time.time() - start_time)
            return True

        except (ServerSelectionTimeoutError, ConnectionFailure) as e:
            health_logger.error("Database health check failed: %s", e)
            return False
        except Exception as e:
            health_logger.error("Unexpected error during health check: %s", e)
            return False

    def get_collection(self, collection_name: str) -> AsyncIOMotorCollection:
        """
        Return a collection from the connected database.

        Raises:
            ConnectionError: If `connect()` has not been called.
        """
        if self.database is None:
            db_logger.error("Attempted to get collection '%s' without database connection", collection_name)
            raise ConnectionError("Database not connected. Call connect() first.")
        return self.database[collection_name]

    async def create_indexes(self):
        """Create the indexes for the users, posts and comments collections."""
        start_time = time.time()
        db_logger.info("Starting database index creation process")

        users = self.get_collection(USERS_COLLECTION)
        await self._create_index_if_not_exists(users, "email", {"unique": True})
        await self._create_index_if_not_exists(users, "username", {"unique": True})
        await self._create_index_if_not_exists(users, "role", {})
        await self._create_index_if_not_exists(users, [("created_at", DESCENDING)], {})
        await self._create_index_if_not_exists(users, "is_verified", {})
        await self._create_index_if_not_exists(users, [("username", TEXT), ("bio", TEXT)], {"name": "users_text"})

        posts = self.get_collection(POSTS_COLLECTION)
        await self._create_index_if_not_exists(posts, "slug", {"unique": True})
        await self._create_index_if_not_exists(posts, [("author", ASCENDING), ("is_published", ASCENDING)], {})
        await self._create_index_if_not_exists(posts, [("is_published", ASCENDING), ("created_at", DESCENDING)], {})
        await self._create_index_if_not_exists(posts, [("is_published", ASCENDING), ("view_count", DESCENDING)], {})
        await self._create_index_if_not_exists(posts, [("category", ASCENDING), ("is_published", ASCENDING)], {})
        await self._create_index_if_not_exists(posts, [("tags", ASCENDING), ("is_published", ASCENDING)], {})
        await self._create_index_if_not_exists(posts, [("title", TEXT), ("content", TEXT)], {"name": "posts_text"})

        comments = self.get_collection(COMMENTS_COLLECTION)
        await self._create_index_if_not_exists(comments, [("post", ASCENDING), ("created_at", DESCENDING)], {})
        await self._create_index_if_not_exists(comments, [("author", ASCENDING), ("created_at", DESCENDING)], {})
        await self._create_index_if_not_exists(
            comments, [("parent_comment", ASCENDING), ("created_at", ASCENDING)], {}
        )

        perf_logger.info("Database index creation completed in %.3fs", time.time() - start_time)
        db_logger.info("Database indexes created successfully")

    async def _create_index_if_not_exists(
        self, collection: AsyncIOMotorCollection, field_spec: Any, options: Dict[str, Any]
    ):
        """Create an index if it doesn't already exist"""
        start_time = time.time()

        try:
            await collection.create_index(field_spec, **options)
            perf_logger.debug("Created/ensured index '%s' in %.3fs", field_spec, time.time() - start_time)
        except Exception as e:
            perf_logger.warning(
                "Failed to create/ensure index '%s' after %.3fs", field_spec, time.time() - start_time
            )
            db_logger.warning("Could not create/ensure index '%s': %s", field_spec, e)


db_manager = DatabaseManager()
