"""
# User Models

Pydantic models and document helpers for InkWell accounts.

## Document Shape (`users` collection)

```python
{
    "_id": ObjectId,
    "username": "alice",                # 3-30 chars, [a-zA-Z0-9_-], unique
    "email": "alice@example.com",       # lower-case, unique
    "password": "$2b$12$...",           # bcrypt hash, never serialized
    "role": "author",                   # admin | author | reader
    "display_name": "", "bio": "", "avatar": "", "location": "", "interests": [],
    "profile_theme": "default", "accent_color": "#3B82F6",
    "privacy_settings": {...}, "notification_preferences": {...}, "social_links": {...},
    "bookmarks": [ObjectId, ...],
    "is_verified": False, "last_login": datetime | None,
    "created_at": datetime, "updated_at": datetime,
}
```

## Public Profiles

`UserResponse.from_document()` never includes the password hash. The email is only included
for the account owner, and `location`, `interests` and `socialLinks` are hidden when the matching
privacy flag is off. `profileCompletion` and `defaultAvatar` are derived on the way out.
"""

import base64
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import EmailStr, Field, field_validator

from inkwell.models.common_models import CamelModel, id_list, id_str, not_null

USERNAME_REGEX = r"^[a-zA-Z0-9_-]+$"
HEX_COLOR_REGEX = r"^#[0-9a-fA-F]{6}$"
TWITTER_REGEX = r"^@?[a-zA-Z0-9_]{1,15}$"
GITHUB_REGEX = r"^[a-zA-Z0-9-]+$"
URL_REGEX = r"^https?://[^\s/$.?#].[^\s]*$"

DEFAULT_ACCENT_COLOR = "#3B82F6"
AVATAR_COLORS = [
    "#FF6B6B",
    "#4ECDC4",
    "#45B7D1",
    "#96CEB4",
    "#FFEAA7",
    "#DDA0DD",
    "#98D8C8",
    "#F7DC6F",
    "#BB8FCE",
    "#85C1E9",
    "#F8C471",
    "#82E0AA",
]


class UserRole(str, Enum):
    ADMIN = "admin"
    AUTHOR = "author"
    READER = "reader"


class ProfileTheme(str, Enum):
    DEFAULT = "default"
    MINIMAL = "minimal"
    CREATIVE = "creative"
    PROFESSIONAL = "professional"


class ProfileVisibility(str, Enum):
    PUBLIC = "public"
    FOLLOWERS = "followers"
    PRIVATE = "private"


class SocialLinks(CamelModel):
    website: Optional[str] = ""
    twitter: Optional[str] = ""
    github: Optional[str] = ""
    linkedin: Optional[str] = ""
    instagram: Optional[str] = ""
    youtube: Optional[str] = ""

    @field_validator("website", "linkedin")
    @classmethod
    def validate_url(cls, v: Optional[str], info: Any) -> Optional[str]:
        if v and not re.match(URL_REGEX, v):
            raise ValueError(f"Please provide a valid {info.field_name} URL")
        return v

    @field_validator("twitter")
    @classmethod
    def validate_twitter(cls, v: Optional[str]) -> Optional[str]:
        if v and not re.match(TWITTER_REGEX, v):
            raise ValueError("Please provide a valid Twitter username")
        return v

    @field_validator("github")
    @classmethod
    def validate_github(cls, v: Optional[str]) -> Optional[str]:
        if v and not re.match(GITHUB_REGEX, v):
            raise ValueError("Please provide a valid GitHub username")
        return v


class PrivacySettings(CamelModel):
    profile_visibility: ProfileVisibility = ProfileVisibility.PUBLIC
    show_email: bool = False
    show_location: bool = True
    show_interests: bool = True
    show_social_links: bool = True


class NotificationPreferences(CamelModel):
    email_notifications: bool = True
    comment_notifications: bool = True
    like_notifications: bool = True
    follow_notifications: bool = True
    newsletter: bool = False


def profile_defaults() -> Dict[str, Any]:
    """Default profile sub-documents for new users and the backfill migration."""
    return {
        "display_name": "",
        "bio": "",
        "avatar": "",
        "location": "",
        "interests": [],
        "profile_theme": ProfileTheme.DEFAULT.value,
        "accent_color": DEFAULT_ACCENT_COLOR,
        "privacy_settings": PrivacySettings().model_dump(mode="json"),
        "notification_preferences": NotificationPreferences().model_dump(mode="json"),
        "social_links": SocialLinks().model_dump(mode="json"),
    }


def new_user_document(username: str, email: str, password_hash: str, role: str = UserRole.AUTHOR.value) -> Dict[str, Any]:
    """Build the document inserted on signup."""
    now = datetime.now(timezone.utc)
    return {
        "username": username,
        "email": email.lower(),
        "password": password_hash,
        "role": role,
        **profile_defaults(),
        "bookmarks": [],
        "is_verified": False,
        "last_login": None,
        "created_at": now,
        "updated_at": now,
    }


def profile_completion(user: Dict[str, Any]) -> int:
    """Percentage of the nine optional profile fields that are filled in."""
    social = user.get("social_links") or {}
    fields = [
        user.get("display_name"),
        user.get("bio"),
        user.get("avatar"),
        user.get("location"),
        len(user.get("interests") or []) > 0,
        social.get("website"),
        social.get("twitter"),
        social.get("github"),
        social.get("linkedin"),
    ]
    return round(sum(1 for f in fields if f) / len(fields) * 100)


def default_avatar(user: Dict[str, Any]) -> str:
    """The uploaded avatar, or an SVG data URI with the user's initials."""
    if user.get("avatar"):
        return user["avatar"]

    username = user.get("username") or "?"
    background = AVATAR_COLORS[ord(username[0]) % len(AVATAR_COLORS)]
    display_name = user.get("display_name")
    if display_name:
        initials = "".join(part[0] for part in display_name.split() if part).upper()
    else:
        initials = username[:2].upper()

    svg = (
        '<svg width="100" height="100" xmlns="http://www.w3.org/2000/svg">'
        f'<rect width="100" height="100" fill="{background}"/>'
        '<text x="50" y="50" font-family="Arial, sans-serif" font-size="40" '
        f'font-weight="bold" fill="white" text-anchor="middle" dy=".3em">{initials}</text>'
        "</svg>"
    )
    return "data:image/svg+xml;base64," + base64.b64encode(svg.encode("utf-8")).decode("ascii")


# --- Request models ---


class UserProfileUpdateRequest(CamelModel):
    """Fields a user may change on their own profile (`PUT /api/users/{id}`)."""

    display_name: Optional[str] = Field(None, max_length=50)
    bio: Optional[str] = Field(None, max_length=500)
    avatar: Optional[str] = None
    location: Optional[str] = Field(None, max_length=100)
    interests: Optional[List[str]] = None
    profile_theme: Optional[ProfileTheme] = None
    accent_color: Optional[str] = Field(None, pattern=HEX_COLOR_REGEX)
    social_links: Optional[SocialLinks] = None
    privacy_settings: Optional[PrivacySettings] = None
    notification_preferences: Optional[NotificationPreferences] = None

    # avatar is the only field a null resets
    @field_validator(
        "display_name",
        "bio",
        "location",
        "interests",
        "profile_theme",
        "accent_color",
        "social_links",
        "privacy_settings",
        "notification_preferences",
        mode="before",
    )
    @classmethod
    def reject_null(cls, v):
        return not_null(v)

    @field_validator("bio", "display_name", "location")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else v

    @field_validator("interests")
    @classmethod
    def validate_interests(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        cleaned = [item.strip() for item in v if item and item.strip()]
        if any(len(item) > 30 for item in cleaned):
            raise ValueError("Each interest cannot exceed 30 characters")
        return cleaned


class AdminUserUpdateRequest(UserProfileUpdateRequest):
    """Admin edit of any account; the password is deliberately not editable here."""

    username: Optional[str] = Field(None, min_length=3, max_length=30, pattern=USERNAME_REGEX)
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    is_verified: Optional[bool] = None

    @field_validator("username", "email", "role", "is_verified", mode="before")
    @classmethod
    def reject_null_account(cls, v):
        return not_null(v)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() if v else v


# --- Response models ---


class UserSummary(CamelModel):
    """Author block embedded in posts and comments."""

    id: str
    username: str
    avatar: Optional[str] = ""
    bio: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any], with_bio: bool = False) -> "UserSummary":
        return cls(
            id=id_str(doc["_id"]),
            username=doc.get("username", ""),
            avatar=doc.get("avatar") or "",
            bio=doc.get("bio") if with_bio else None,
        )


class BookmarkSummary(CamelModel):
    id: str
    title: str
    slug: str
    featured_image: Optional[str] = None
    excerpt: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "BookmarkSummary":
        return cls(
            id=id_str(doc["_id"]),
            title=doc.get("title", ""),
            slug=doc.get("slug", ""),
            featured_image=doc.get("featured_image"),
            excerpt=doc.get("excerpt"),
        )


class UserResponse(CamelModel):
    """
    Public (or owner) view of an account.

    Private fields are `None` when hidden and omitted from responses by the routes'
    `response_model_exclude_none` where that matters.
    """

    id: str
    username: str
    email: Optional[str] = None
    role: UserRole
    display_name: Optional[str] = ""
    bio: Optional[str] = ""
    avatar: Optional[str] = ""
    default_avatar: str
    location: Optional[str] = None
    interests: Optional[List[str]] = None
    social_links: Optional[SocialLinks] = None
    profile_theme: ProfileTheme = ProfileTheme.DEFAULT
    accent_color: str = DEFAULT_ACCENT_COLOR
    privacy_settings: Optional[PrivacySettings] = None
    notification_preferences: Optional[NotificationPreferences] = None
    bookmarks: List[Union[BookmarkSummary, str]] = Field(default_factory=list)
    is_verified: bool = False
    profile_completion: int = 0
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_document(
        cls,
        doc: Dict[str, Any],
        include_private: bool = False,
        bookmarks: Optional[List[Dict[str, Any]]] = None,
    ) -> "UserResponse":
        """
        Build the response for `doc`.

        Args:
            doc (Dict[str, Any]): The user document.
            include_private (bool): True for the account owner and admins: keeps email,
                preferences and every profile field regardless of privacy flags.
            bookmarks (List[Dict], optional): Expanded bookmark post documents; ids otherwise.
        """
        privacy = PrivacySettings(**(doc.get("privacy_settings") or {}))
        show = lambda flag: include_private or flag  # noqa: E731

        email = doc.get("email") if (include_private or privacy.show_email) else None
        return cls(
            id=id_str(doc["_id"]),
            username=doc.get("username", ""),
            email=email,
            role=doc.get("role", UserRole.READER.value),
            display_name=doc.get("display_name") or "",
            bio=doc.get("bio") or "",
            avatar=doc.get("avatar") or "",
            default_avatar=default_avatar(doc),
            location=(doc.get("location") or "") if show(privacy.show_location) else None,
            interests=(doc.get("interests") or []) if show(privacy.show_interests) else None,
            social_links=SocialLinks.model_construct(**(doc.get("social_links") or {}))
            if show(privacy.show_social_links)
            else None,
            profile_theme=doc.get("profile_theme") or ProfileTheme.DEFAULT.value,
            accent_color=doc.get("accent_color") or DEFAULT_ACCENT_COLOR,
            privacy_settings=privacy if include_private else None,
            notification_preferences=NotificationPreferences(**(doc.get("notification_preferences") or {}))
            if include_private
            else None,
            bookmarks=[BookmarkSummary.from_document(b) for b in bookmarks]
            if bookmarks is not None
            else id_list(doc.get("bookmarks")),
            is_verified=bool(doc.get("is_verified")),
            profile_completion=profile_completion(doc),
            last_login=doc.get("last_login"),
            created_at=doc.get("created_at"),
        )


class UserProfileResponse(CamelModel):
    message: Optional[str] = None
    user: UserResponse


class UserStatsResponse(CamelModel):
    total_posts: int
    published_posts: int
    drafts: Optional[int] = None
    total_views: int
    total_likes: int
    total_comments: int


class AvatarUploadResponse(CamelModel):
    message: str
    avatar: str
    user: UserResponse
