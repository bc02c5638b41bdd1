"""
Avatar Service
==============
Stores profile pictures in a Supabase Storage bucket.

Each user has at most one object, ``avatar_<user_id>``, overwritten on
every upload; the public URL is what ends up on the user row. Images are
stored as uploaded.
"""

from __future__ import annotations

import logging

from supabase import Client

from app.config import Settings, get_settings
from app.errors import AvatarUploadError, InvalidAvatarError

logger = logging.getLogger(__name__)


def avatar_path(user_id: str) -> str:
    return f"avatar_{user_id}"


class AvatarService:

    def __init__(self, db: Client, settings: Settings | None = None) -> None:
        self._db = db
        self._settings = settings or get_settings()

    @property
    def max_bytes(self) -> int:
        return self._settings.avatar_max_bytes

    def validate(self, content_type: str | None, size: int) -> None:
        if not content_type or not content_type.startswith("image/"):
            raise InvalidAvatarError("Only image files are allowed")
        if size == 0:
            raise InvalidAvatarError("Uploaded file is empty")
        if size > self.max_bytes:
            limit_mb = self.max_bytes // (1024 * 1024)
            raise InvalidAvatarError(f"Image is larger than {limit_mb} MB")

    def upload(self, user_id: str, content: bytes, content_type: str | None) -> str:
        """Validate and store the image, returning its public URL."""
        self.validate(content_type, len(content))

        bucket = self._db.storage.from_(self._settings.avatar_bucket)
        path = avatar_path(user_id)
        try:
            bucket.upload(
                path,
                content,
                {"content-type": content_type, "upsert": "true"},
            )
        except Exception as exc:
            logger.exception("Avatar upload failed for user %s", user_id)
            raise AvatarUploadError() from exc

        url = bucket.get_public_url(path)
        logger.info("Avatar uploaded for user %s (%d bytes)", user_id, len(content))
        return url

    def delete(self, user_id: str) -> None:
        """Remove the stored image. A missing object is not an error."""
        try:
            self._db.storage.from_(self._settings.avatar_bucket).remove([avatar_path(user_id)])
        except Exception:
            logger.warning("Could not delete avatar object for user %s", user_id, exc_info=True)
