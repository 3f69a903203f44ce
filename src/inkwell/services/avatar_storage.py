"""
# Avatar Storage

Stores uploaded profile images and returns the public URL to save on the user document.

`LocalAvatarStorage` writes files under `MEDIA_ROOT/avatars/` with random names and the
application mounts `MEDIA_ROOT` at `MEDIA_URL`. The interface is a single `save()` coroutine,
so a remote object store can replace it without touching the route.
"""

import uuid
from pathlib import Path
from typing import Optional

import aiofiles
from fastapi import UploadFile

from inkwell.config import settings
from inkwell.managers.logging_manager import get_logger

logger = get_logger(prefix="[Avatar Storage]")

ALLOWED_CONTENT_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


class AvatarTooLargeError(ValueError):
    pass


class UnsupportedAvatarTypeError(ValueError):
    pass


class LocalAvatarStorage:
    """Saves avatars on local disk below the media root."""

    def __init__(self, root: Optional[str] = None, base_url: Optional[str] = None, max_bytes: Optional[int] = None):
        self.root = Path(root or settings.MEDIA_ROOT) / "avatars"
        self.base_url = (base_url or settings.MEDIA_URL).rstrip("/") + "/avatars"
        self.max_bytes = max_bytes or settings.AVATAR_MAX_BYTES

    async def save(self, user_id: str, upload: UploadFile) -> str:
        """
        Validate and persist an uploaded image.

        Returns:
            str: Public URL of the stored file.

        Raises:
            UnsupportedAvatarTypeError: For content types other than JPEG, PNG, GIF or WebP.
            AvatarTooLargeError: When the file exceeds `AVATAR_MAX_BYTES`.
        """
        extension = ALLOWED_CONTENT_TYPES.get(upload.content_type or "")
        if extension is None:
            raise UnsupportedAvatarTypeError("Only JPEG, PNG, GIF and WebP images are allowed")

        content = await upload.read(self.max_bytes + 1)
        if len(content) > self.max_bytes:
            raise AvatarTooLargeError(f"Avatar exceeds the {self.max_bytes} byte limit")

        self.root.mkdir(parents=True, exist_ok=True)
        filename = f"{user_id}-{uuid.uuid4().hex}{extension}"
        async with aiofiles.open(self.root / filename, "wb") as f:
            await f.write(content)

        logger.info("Stored avatar %s (%d bytes) for user %s", filename, len(content), user_id)
        return f"{self.base_url}/{filename}"


avatar_storage = LocalAvatarStorage()
