"""
# Blog Models

Request and response models for posts, comments, likes, bookmarks and search.

## Sanitization

- **title**, **excerpt**, **SEO fields** and **comment content**: every HTML tag is stripped.
- **post content**: Markdown is stored as-is; embedded HTML is reduced to an allowlist of
  formatting tags (`<p>`, `<strong>`, `<code>`, `<a>`, ...). Scripts and iframes are removed.

## Embedding

Responses embed the author as a `UserSummary` (`{id, username, avatar}`) and, for comments listed
by user, the post as `{id, title, slug}`. When the referenced document has been deleted the raw id
string is returned instead.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

import bleach
from pydantic import Field, field_validator

from inkwell.models.common_models import CamelModel, id_list, id_str, is_object_id, not_null
from inkwell.models.user_models import UserSummary

CONTENT_ALLOWED_TAGS = [
    "p", "br", "strong", "em", "code", "pre", "h1", "h2", "h3", "h4", "h5", "h6",
    "ul", "ol", "li", "blockquote", "a", "img", "hr", "table", "thead", "tbody",
    "tr", "th", "td",
]
CONTENT_ALLOWED_ATTRIBUTES = {"a": ["href", "title"], "img": ["src", "alt", "title"]}


def strip_html(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    return bleach.clean(value, tags=[], strip=True).strip()


def clean_content(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    return bleach.clean(value, tags=CONTENT_ALLOWED_TAGS, attributes=CONTENT_ALLOWED_ATTRIBUTES, strip=True)


class PostCategory(str, Enum):
    TECHNOLOGY = "Technology"
    DESIGN = "Design"
    BUSINESS = "Business"
    LIFESTYLE = "Lifestyle"
    TRAVEL = "Travel"
    FOOD = "Food"
    HEALTH = "Health"
    EDUCATION = "Education"
    ENTERTAINMENT = "Entertainment"
    OTHER = "Other"


class PostSort(str, Enum):
    LATEST = "latest"
    POPULAR = "popular"
    OLDEST = "oldest"


def _validate_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    if tags is None:
        return tags
    cleaned = []
    for tag in tags:
        value = strip_html(str(tag)).lower()
        if not 1 <= len(value) <= 20:
            raise ValueError("Each tag must be between 1 and 20 characters")
        if value not in cleaned:
            cleaned.append(value)
    return cleaned


# --- Post requests ---


class PostCreateRequest(CamelModel):
    """
    Request model for creating a post.

    Slug, read time, excerpt and SEO fields are derived on the write path when not supplied.
    An omitted `excerpt` is generated from the content; an explicit empty string is kept.
    """

    title: str = Field(..., min_length=1, max_length=200, description="Post title")
    content: str = Field(..., min_length=10, description="Post content (Markdown)")
    excerpt: Optional[str] = Field(None, max_length=300, description="Short summary")
    featured_image: Optional[str] = Field(None, description="Featured image URL")
    tags: List[str] = Field(default_factory=list, description="Tags, lower-cased")
    category: PostCategory = Field(..., description="Post category")
    is_published: bool = Field(default=False, description="Whether the post is public")
    is_featured: bool = Field(default=False, description="Whether the post is featured")
    seo_title: Optional[str] = Field(None, max_length=60, description="SEO title")
    seo_description: Optional[str] = Field(None, max_length=160, description="SEO description")

    model_config = {
        "json_schema_extra": {
            "example": {
                "title": "Hello World",
                "content": "My first post on InkWell, written in **Markdown**.",
                "category": "Technology",
                "tags": ["intro", "python"],
                "isPublished": True,
            }
        }
    }

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        v = strip_html(v)
        if not v:
            raise ValueError("Title must be between 1 and 200 characters")
        return v

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        return clean_content(v)

    @field_validator("excerpt", "seo_title", "seo_description")
    @classmethod
    def validate_plain_text(cls, v):
        return strip_html(v)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v):
        return _validate_tags(v)


class PostUpdateRequest(CamelModel):
    """Partial update of a post by its author or an admin."""

    title: Optional[str] = Field(None, min_length=1, max_length=200, description="Post title")
    content: Optional[str] = Field(None, min_length=10, description="Post content (Markdown)")
    excerpt: Optional[str] = Field(None, max_length=300, description="Short summary")
    featured_image: Optional[str] = Field(None, description="Featured image URL")
    tags: Optional[List[str]] = Field(None, description="Tags, lower-cased")
    category: Optional[PostCategory] = Field(None, description="Post category")
    is_published: Optional[bool] = Field(None, description="Whether the post is public")
    is_featured: Optional[bool] = Field(None, description="Whether the post is featured")
    seo_title: Optional[str] = Field(None, max_length=60, description="SEO title")
    seo_description: Optional[str] = Field(None, max_length=160, description="SEO description")

    @field_validator("title", "content", "tags", "category", "is_published", "is_featured", mode="before")
    @classmethod
    def reject_null(cls, v):
        return not_null(v)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        if v is None:
            return v
        v = strip_html(v)
        if not v:
            raise ValueError("Title must be between 1 and 200 characters")
        return v

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        return clean_content(v)

    @field_validator("excerpt", "seo_title", "seo_description")
    @classmethod
    def validate_plain_text(cls, v):
        return strip_html(v)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v):
        return _validate_tags(v)


class AdminPostUpdateRequest(PostUpdateRequest):
    """Admin edit of any post; also allows resetting counters."""

    view_count: Optional[int] = Field(None, ge=0, description="Stored view count")

    @field_validator("view_count", mode="before")
    @classmethod
    def reject_null_count(cls, v):
        return not_null(v)


# --- Comment requests ---


class CommentCreateRequest(CamelModel):
    content: str = Field(..., min_length=1, max_length=1000, description="Comment content")
    post_id: str = Field(..., description="Id of the commented post")
    parent_comment_id: Optional[str] = Field(None, description="Parent comment id for replies")

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        v = strip_html(v)
        if not v:
            raise ValueError("Comment must be between 1 and 1000 characters")
        return v

    @field_validator("post_id")
    @classmethod
    def validate_post_id(cls, v):
        if not is_object_id(v):
            raise ValueError("Invalid post ID")
        return v

    @field_validator("parent_comment_id")
    @classmethod
    def validate_parent_id(cls, v):
        if v is not None and not is_object_id(v):
            raise ValueError("Invalid parent comment ID")
        return v


class CommentUpdateRequest(CamelModel):
    content: str = Field(..., min_length=1, max_length=1000, description="Comment content")

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        v = strip_html(v)
        if not v:
            raise ValueError("Comment must be between 1 and 1000 characters")
        return v


class AdminCommentUpdateRequest(CamelModel):
    content: Optional[str] = Field(None, min_length=1, max_length=1000)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        return strip_html(v)


# --- Responses ---


def _author(doc: Dict[str, Any], author: Optional[Dict[str, Any]], with_bio: bool = False) -> Union[UserSummary, str, None]:
    if author:
        return UserSummary.from_document(author, with_bio=with_bio)
    return id_str(doc.get("author"))


class PostResponse(CamelModel):
    id: str
    title: str
    slug: str
    content: Optional[str] = None
    excerpt: Optional[str] = None
    featured_image: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    category: str
    author: Union[UserSummary, str, None] = None
    likes: List[str] = Field(default_factory=list)
    like_count: int = 0
    comment_count: int = 0
    is_published: bool = False
    is_featured: bool = False
    read_time: int = 0
    view_count: int = 0
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(
        cls,
        doc: Dict[str, Any],
        author: Optional[Dict[str, Any]] = None,
        comment_count: int = 0,
        with_bio: bool = False,
        include_content: bool = True,
    ) -> "PostResponse":
        likes = id_list(doc.get("likes"))
        return cls(
            id=id_str(doc["_id"]),
            title=doc.get("title", ""),
            slug=doc.get("slug", ""),
            content=doc.get("content") if include_content else None,
            excerpt=doc.get("excerpt"),
            featured_image=doc.get("featured_image"),
            tags=doc.get("tags") or [],
            category=doc.get("category", PostCategory.OTHER.value),
            author=_author(doc, author, with_bio),
            likes=likes,
            like_count=len(likes),
            comment_count=comment_count,
            is_published=bool(doc.get("is_published")),
            is_featured=bool(doc.get("is_featured")),
            read_time=doc.get("read_time") or 0,
            view_count=doc.get("view_count") or 0,
            seo_title=doc.get("seo_title"),
            seo_description=doc.get("seo_description"),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )


class PostEnvelope(CamelModel):
    message: Optional[str] = None
    post: PostResponse


class PostRef(CamelModel):
    id: str
    title: str
    slug: str


class CommentResponse(CamelModel):
    id: str
    content: str
    post: Union[PostRef, str, None] = None
    author: Union[UserSummary, str, None] = None
    parent_comment: Optional[str] = None
    likes: List[str] = Field(default_factory=list)
    like_count: int = 0
    reply_count: int = 0
    replies: Optional[List["CommentResponse"]] = None
    is_edited: bool = False
    edited_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(
        cls,
        doc: Dict[str, Any],
        author: Optional[Dict[str, Any]] = None,
        post: Optional[Dict[str, Any]] = None,
        replies: Optional[List["CommentResponse"]] = None,
        reply_count: Optional[int] = None,
    ) -> "CommentResponse":
        likes = id_list(doc.get("likes"))
        if post:
            post_value = PostRef(id=id_str(post["_id"]), title=post.get("title", ""), slug=post.get("slug", ""))
        else:
            post_value = id_str(doc.get("post"))
        return cls(
            id=id_str(doc["_id"]),
            content=doc.get("content", ""),
            post=post_value,
            author=_author(doc, author),
            parent_comment=id_str(doc.get("parent_comment")),
            likes=likes,
            like_count=len(likes),
            reply_count=reply_count if reply_count is not None else len(replies or []),
            replies=replies,
            is_edited=bool(doc.get("is_edited")),
            edited_at=doc.get("edited_at"),
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )


class CommentEnvelope(CamelModel):
    message: Optional[str] = None
    comment: CommentResponse


class LikeToggleResponse(CamelModel):
    message: str
    liked: bool
    like_count: int


class BookmarkToggleResponse(CamelModel):
    message: str
    bookmarked: bool
    bookmark_count: int


# --- Search ---


class TagCount(CamelModel):
    tag: str
    count: int


class CategoryCount(CamelModel):
    category: str
    count: int


class Suggestion(CamelModel):
    type: str
    title: str
    slug: Optional[str] = None
    username: Optional[str] = None
    tag: Optional[str] = None


class SuggestionsResponse(CamelModel):
    suggestions: List[Suggestion]


class TagsResponse(CamelModel):
    tags: List[TagCount]


class CategoriesResponse(CamelModel):
    categories: List[CategoryCount]
