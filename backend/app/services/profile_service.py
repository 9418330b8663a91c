"""User profile - display name and avatar image"""
import asyncio
import logging
import time
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from fastapi import UploadFile

from sqlalchemy.orm import Session

from app.core.config import settings, ALLOWED_IMAGE_TYPES
from app.core.exceptions import StorageError, ValidationError
from app.core.metrics import avatar_uploads_counter
from app.core.security import AuthContext
from app.db import helpers as db_helpers
from app.models.user_profile import UserProfile
from app.services.storage.object_store import ObjectStore
from app.services.video_service import upload_size

profile_logger = logging.getLogger("profile")

MAX_FULL_NAME_LENGTH = 100


def build_avatar_key(user_id: str, mime_type: str) -> str:
    """Object store key: avatars/<user_id>/<epoch millis>.<ext>"""
    return f"avatars/{user_id}/{int(time.time() * 1000)}.{ALLOWED_IMAGE_TYPES[mime_type]}"


def avatar_url(profile: Optional[UserProfile], store: ObjectStore) -> Optional[str]:
    """Signed URL for the stored avatar, or None when there is none or signing fails"""
    if profile is None or not profile.avatar_path:
        return None
    try:
        return store.generate_download_url(profile.avatar_path, settings.SIGNED_URL_EXPIRY)
    except StorageError as e:
        profile_logger.warning(f"Could not sign avatar {profile.avatar_path}: {e.message}")
        return None


def get_profile(auth: AuthContext, db: Session) -> Optional[UserProfile]:
    return db_helpers.get_profile(db, auth.user_id)


def update_full_name(auth: AuthContext, full_name, db: Session) -> UserProfile:
    """Set the display name (trimmed, 1-100 characters)

    Raises:
        ValidationError: Missing, blank or too long
    """
    if not isinstance(full_name, str):
        raise ValidationError("Full name is required and must be a string")
    full_name = full_name.strip()
    if not full_name:
        raise ValidationError("Full name cannot be empty")
    if len(full_name) > MAX_FULL_NAME_LENGTH:
        raise ValidationError(f"Full name cannot exceed {MAX_FULL_NAME_LENGTH} characters")

    profile = db_helpers.upsert_profile(db, auth.user_id, {"full_name": full_name})
    profile_logger.info(f"Updated full name for user {auth.user_id}")
    return profile


async def upload_avatar(
    auth: AuthContext,
    file: Optional["UploadFile"],
    db: Session,
    store: ObjectStore,
) -> UserProfile:
    """Store a new avatar image and point the profile at it

    The previous avatar file is removed (best-effort) once the profile row
    references the new one.

    Raises:
        ValidationError: No file, unsupported type or larger than MAX_AVATAR_SIZE
        StorageError: Profile row could not be updated (new file is removed)
    """
    if file is None:
        raise ValidationError("No file provided")

    mime_type = file.content_type
    if mime_type not in ALLOWED_IMAGE_TYPES:
        avatar_uploads_counter.labels(status="rejected").inc()
        raise ValidationError("Invalid file type. Only JPEG, PNG, WebP, and GIF are allowed")

    size = upload_size(file)
    if size > settings.MAX_AVATAR_SIZE:
        avatar_uploads_counter.labels(status="rejected").inc()
        raise ValidationError(f"File size exceeds {settings.MAX_AVATAR_SIZE // (1024 * 1024)}MB limit")

    existing = db_helpers.get_profile(db, auth.user_id)
    old_key = existing.avatar_path if existing else None

    key = build_avatar_key(auth.user_id, mime_type)
    file.file.seek(0)
    await asyncio.to_thread(store.upload_fileobj, file.file, key, mime_type)

    try:
        profile = db_helpers.upsert_profile(db, auth.user_id, {"avatar_path": key})
    except Exception as e:
        profile_logger.error(f"Failed to record avatar {key} for user {auth.user_id}: {e}", exc_info=True)
        await asyncio.to_thread(store.delete_object, key)
        avatar_uploads_counter.labels(status="failed").inc()
        raise StorageError("Failed to update profile with avatar URL")

    if old_key and old_key != key:
        if not await asyncio.to_thread(store.delete_object, old_key):
            profile_logger.warning(f"Previous avatar {old_key} for user {auth.user_id} was not removed")

    avatar_uploads_counter.labels(status="success").inc()
    profile_logger.info(f"Stored avatar {key} ({size} bytes) for user {auth.user_id}")
    return profile


async def delete_avatar(auth: AuthContext, db: Session, store: ObjectStore) -> UserProfile:
    """Clear the avatar; the stored file is removed best-effort"""
    existing = db_helpers.get_profile(db, auth.user_id)
    old_key = existing.avatar_path if existing else None

    profile = db_helpers.upsert_profile(db, auth.user_id, {"avatar_path": None})

    if old_key and not await asyncio.to_thread(store.delete_object, old_key):
        profile_logger.warning(f"Avatar {old_key} for user {auth.user_id} was not removed")
    profile_logger.info(f"Removed avatar for user {auth.user_id}")
    return profile
