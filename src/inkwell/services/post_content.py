"""
# Post Content Derivation

Pure functions computing the derived fields of a post on the write path. Route handlers call
them explicitly before persisting, so every rule is testable without a database.

| Field | Rule |
|-------|------|
| `slug` | `slugify(title)`, made unique by `generate_unique_slug` |
| `read_time` | `ceil(words / 200)`, words split on single spaces |
| `excerpt` | first 150 characters, tags stripped, `"..."` appended; only when no excerpt was given |
| `seo_title` | title, truncated to 57 characters + `"..."` when longer than 60 |
| `seo_description` | the excerpt |

## Slug uniqueness

`generate_unique_slug` asks an async `slug_exists(slug, exclude_id)` predicate about
`base`, `base-1`, `base-2`, ... for at most `SLUG_MAX_ATTEMPTS` lookups. When the last candidate
is still taken it returns `base-<last 6 digits of the millisecond clock>` without another lookup,
so the loop is bounded; the unique index on `posts.slug` catches the remaining race.
"""

import math
import re
import time
import unicodedata
from typing import Any, Awaitable, Callable, Dict, Optional

from inkwell.config import settings

WORDS_PER_MINUTE = 200
EXCERPT_LENGTH = 150
SEO_TITLE_MAX_LENGTH = 60
DEFAULT_SLUG = "post"

SLUG_REMOVE_PATTERN = re.compile(r"[*+~.()'\"!:@]")
SLUG_SEPARATOR_PATTERN = re.compile(r"[^a-z0-9]+")
TAG_PATTERN = re.compile(r"<[^>]*>")

SlugExists = Callable[[str, Optional[Any]], Awaitable[bool]]


def slugify(title: str) -> str:
    """
    Derive a URL-safe, lowercase slug from a title.

    Accents are folded to ASCII, the characters ``*+~.()'"!:@`` are dropped and every other run of
    non-alphanumerics becomes a single hyphen.

    Example:
        >>> slugify("Hello, World! (Part 2)")
        'hello-world-part-2'
    """
    text = unicodedata.normalize("NFKD", title or "").encode("ascii", "ignore").decode("ascii")
    text = SLUG_REMOVE_PATTERN.sub("", text.lower().replace("&", " and "))
    text = SLUG_SEPARATOR_PATTERN.sub("-", text).strip("-")
    return text or DEFAULT_SLUG


def _timestamp_suffix() -> str:
    return str(int(time.time() * 1000))[-6:]


async def generate_unique_slug(
    title: str,
    slug_exists: SlugExists,
    exclude_id: Optional[Any] = None,
    max_attempts: Optional[int] = None,
) -> str:
    """
    Return a slug for `title` that no other post uses.

    Args:
        title (str): The post title.
        slug_exists (SlugExists): Async predicate `(slug, exclude_id) -> bool`.
        exclude_id: Id of the post being updated, so it does not collide with itself.
        max_attempts (int, optional): Lookup budget; defaults to `SLUG_MAX_ATTEMPTS`.

    Returns:
        str: `base`, `base-N`, or `base-<timestamp>` when the budget is exhausted.
    """
    base = slugify(title)
    attempts = max_attempts or settings.SLUG_MAX_ATTEMPTS
    slug = base
    counter = 1

    for attempt in range(attempts):
        if not await slug_exists(slug, exclude_id):
            return slug
        if attempt == attempts - 1:
            return f"{base}-{_timestamp_suffix()}"
        slug = f"{base}-{counter}"
        counter += 1

    return slug


def calculate_read_time(content: str) -> int:
    """Minutes to read `content` at 200 words per minute, rounded up."""
    if not content:
        return 0
    return math.ceil(len(content.split(" ")) / WORDS_PER_MINUTE)


def generate_excerpt(content: str) -> str:
    """First 150 characters of `content` with markup removed, followed by an ellipsis."""
    return TAG_PATTERN.sub("", (content or "")[:EXCERPT_LENGTH]) + "..."


def default_seo_title(title: str) -> str:
    if len(title) > SEO_TITLE_MAX_LENGTH:
        return title[: SEO_TITLE_MAX_LENGTH - 3] + "..."
    return title


def derive_post_fields(post: Dict[str, Any], title_changed: bool, content_changed: bool) -> Dict[str, Any]:
    """
    Compute the derived fields to store alongside a post write.

    Args:
        post (Dict[str, Any]): The post as it will be stored (existing document merged with the
            update), using snake_case keys.
        title_changed (bool): True on create and when an update changes the title.
        content_changed (bool): True on create and when an update changes the content.

    Returns:
        Dict[str, Any]: Only the fields that need to be set; the slug is handled separately
        because it needs a uniqueness lookup.
    """
    derived: Dict[str, Any] = {}

    if title_changed or content_changed:
        derived["read_time"] = calculate_read_time(post.get("content", ""))

    if title_changed:
        excerpt = post.get("excerpt")
        # None means "not supplied"; an explicit empty string is kept
        if excerpt is None:
            excerpt = generate_excerpt(post.get("content", ""))
            derived["excerpt"] = excerpt
        if not post.get("seo_title"):
            derived["seo_title"] = default_seo_title(post.get("title", ""))
        if not post.get("seo_description"):
            derived["seo_description"] = excerpt

    return derived
