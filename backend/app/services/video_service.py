"""Video library - upload, list, fetch and delete stored videos"""
import asyncio
import logging
import os
import time
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from fastapi import UploadFile

from sqlalchemy.orm import Session

from app.core.config import settings, ALLOWED_VIDEO_TYPES
from app.core.exceptions import NotFoundError, StorageError, ValidationError
from app.core.metrics import video_uploads_counter
from app.core.security import AuthContext
from app.db import helpers as db_helpers
from app.models.video import Video
from app.services.storage.object_store import ObjectStore

upload_logger = logging.getLogger("upload")


def upload_size(file: "UploadFile") -> int:
    if getattr(file, "size", None) is not None:
        return file.size
    file.file.seek(0, os.SEEK_END)
    size = file.file.tell()
    file.file.seek(0)
    return size


def build_object_key(user_id: str, mime_type: str) -> str:
    """Object store key: <user_id>/<epoch millis>.<ext>"""
    return f"{user_id}/{int(time.time() * 1000)}.{ALLOWED_VIDEO_TYPES[mime_type]}"


async def upload_video(
    auth: AuthContext,
    file: "UploadFile",
    title: Optional[str],
    description: Optional[str],
    db: Session,
    store: ObjectStore,
) -> Video:
    """Validate, store and record an uploaded video

    Raises:
        ValidationError: Unsupported type or file too large
        StorageError: Upload or database insert failed (stored object is removed)
    """
    mime_type = file.content_type
    if mime_type not in ALLOWED_VIDEO_TYPES:
        video_uploads_counter.labels(status="rejected").inc()
        raise ValidationError(
            "Invalid file type. Only video files are allowed."
        )

    size = upload_size(file)
    if size > settings.MAX_VIDEO_SIZE:
        video_uploads_counter.labels(status="rejected").inc()
        raise ValidationError(
            f"File too large. Maximum size is {settings.MAX_VIDEO_SIZE // (1024 * 1024)}MB."
        )

    key = build_object_key(auth.user_id, mime_type)
    file_name = file.filename or key.rsplit("/", 1)[-1]
    upload_logger.info(f"Uploading {file_name} ({size} bytes) for user {auth.user_id} as {key}")

    file.file.seek(0)
    await asyncio.to_thread(store.upload_fileobj, file.file, key, mime_type)

    try:
        video = db_helpers.add_video(
            db, auth.user_id,
            title=(title or "").strip() or file_name,
            description=description,
            file_path=key,
            file_name=file_name,
            file_size=size,
            mime_type=mime_type,
        )
    except Exception as e:
        db.rollback()
        upload_logger.error(f"Failed to record video {key} for user {auth.user_id}: {e}", exc_info=True)
        await asyncio.to_thread(store.delete_object, key)
        video_uploads_counter.labels(status="failed").inc()
        raise StorageError("Failed to save video record")

    video_uploads_counter.labels(status="success").inc()
    return video


def list_videos(auth: AuthContext, db: Session) -> List[Video]:
    return db_helpers.list_videos(db, auth.user_id)


def get_video(auth: AuthContext, video_id: str, db: Session) -> Video:
    video = db_helpers.get_video(db, auth.user_id, video_id)
    if video is None:
        raise NotFoundError("Video not found")
    return video


async def delete_video(auth: AuthContext, video_id: str, db: Session, store: ObjectStore) -> None:
    """Delete a video, its posts and (best-effort) its stored file"""
    video = get_video(auth, video_id, db)
    key = video.file_path
    db_helpers.delete_video(db, video)
    if not await asyncio.to_thread(store.delete_object, key):
        upload_logger.warning(f"Stored file {key} for deleted video {video_id} was not removed")
    upload_logger.info(f"Deleted video {video_id} for user {auth.user_id}")
