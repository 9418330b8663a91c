"""Publish dispatcher - fan one video out to several platforms concurrently.

Every requested platform gets its own Post row, its own HTTP client and its
own deadline. One platform failing never cancels or affects the others.
"""
import asyncio
import logging
import time
from typing import List, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import CrossPostError, NotFoundError, ValidationError
from app.core.metrics import posts_counter, publish_duration_histogram
from app.core.security import AuthContext
from app.db import helpers as db_helpers
from app.models.enums import Platform, PostStatus
from app.models.post import Post
from app.services.http import vendor_client
from app.services.oauth.service import ensure_fresh_credentials
from app.services.publish.base import PublishRequest, VideoFile
from app.services.publish.helpers import format_platform_error
from app.services.publish.registry import PUBLISHERS
from app.services.storage.object_store import ObjectStore

publish_logger = logging.getLogger("publish")


def validate_requests(video_id: str, requests: Sequence[PublishRequest]) -> List[PublishRequest]:
    """Reject malformed dispatch input before anything is written

    Raises:
        ValidationError: On a missing video id, no platforms, an unknown platform or a missing title
    """
    if not video_id:
        raise ValidationError("Missing required fields: video_id")
    if not requests:
        raise ValidationError("Missing required fields: platforms")

    for request in requests:
        try:
            platform = Platform(request.platform)
        except ValueError:
            raise ValidationError(f"Unsupported platform: {request.platform}")
        if not request.title or not request.title.strip():
            raise ValidationError(f"Missing required fields: title for {platform.value}")
    return list(requests)


async def dispatch(
    auth: AuthContext,
    video_id: str,
    requests: Sequence[PublishRequest],
    db: Session,
    store: ObjectStore,
) -> List[Post]:
    """Publish a video to every requested platform

    Each entry gets its own post, so the same platform may appear twice.

    Returns:
        One Post per request, in request order, each in a terminal state
        unless the database itself refused every write for it

    Raises:
        ValidationError: Malformed input (nothing written)
        NotFoundError: Video absent or not owned by the caller (nothing written)
        StorageError: Signed URL could not be created (nothing written)
    """
    requests = validate_requests(video_id, requests)

    video = db_helpers.get_video(db, auth.user_id, video_id)
    if video is None:
        raise NotFoundError("Video not found")
    video = VideoFile.from_model(video)

    signed_url = store.generate_download_url(video.file_path, settings.SIGNED_URL_EXPIRY)

    posts = db_helpers.create_posts(db, auth.user_id, video.id, [
        {"platform": r.platform, "title": r.title, "description": r.description, "tags": r.tags}
        for r in requests
    ])
    post_ids = [post.id for post in posts]

    publish_logger.info(
        f"Dispatching video {video.id} for user {auth.user_id} to "
        f"{', '.join(r.platform for r in requests)}"
    )
    results = await asyncio.gather(
        *(_publish_one(auth, video, request, post, post_id, signed_url, db)
          for request, post, post_id in zip(requests, posts, post_ids)),
        return_exceptions=True
    )

    for request, post_id, result in zip(requests, post_ids, results):
        if isinstance(result, BaseException):
            publish_logger.error(
                f"{request.platform} post {post_id} for video {video.id} ended unrecorded: {result}",
                exc_info=result
            )
    return posts


async def _publish_one(
    auth: AuthContext,
    video: VideoFile,
    request: PublishRequest,
    post: Post,
    post_id: str,
    signed_url: str,
    db: Session,
) -> None:
    platform = Platform(request.platform)
    try:
        await _run_publisher(auth, video, request, post, post_id, signed_url, db, platform)
    except SQLAlchemyError as e:
        # Leave the shared session usable for the other platforms
        db.rollback()
        publish_logger.error(f"Could not record {platform.value} result for post {post_id}: {e}", exc_info=True)
        _record_failure(db, post, post_id, platform, f"{platform.value}: publish result could not be recorded")


async def _run_publisher(
    auth: AuthContext,
    video: VideoFile,
    request: PublishRequest,
    post: Post,
    post_id: str,
    signed_url: str,
    db: Session,
    platform: Platform,
) -> None:
    connection = db_helpers.get_connection(db, auth.user_id, platform.value)
    if connection is None:
        _fail(db, post, post_id, platform, f"{platform.value} not connected")
        return

    async def on_status(status: PostStatus) -> None:
        try:
            db_helpers.update_post_status(db, post, status)
        except SQLAlchemyError as e:
            # Progress is advisory; only the terminal write has to land
            publish_logger.warning(f"Could not record {status.value} for post {post_id}: {e}")

    publisher = PUBLISHERS[platform]
    started = time.perf_counter()
    try:
        async with vendor_client() as client:
            creds = await ensure_fresh_credentials(client, connection, db)
            result = await asyncio.wait_for(
                publisher(client, creds, video, request, signed_url, on_status=on_status),
                timeout=settings.PUBLISH_DEADLINE
            )
    except asyncio.TimeoutError:
        _fail(db, post, post_id, platform,
              f"{platform.value}: publish did not complete within {int(settings.PUBLISH_DEADLINE)}s")
        return
    except CrossPostError as e:
        _fail(db, post, post_id, platform, format_platform_error(platform.value, e.message))
        return
    except Exception as e:
        if isinstance(e, SQLAlchemyError):
            db.rollback()
        publish_logger.error(f"Unexpected {platform.value} publish error for post {post_id}: {e}", exc_info=True)
        _fail(db, post, post_id, platform, format_platform_error(platform.value, str(e) or type(e).__name__))
        return
    finally:
        publish_duration_histogram.labels(platform=platform.value).observe(time.perf_counter() - started)

    db_helpers.update_post_status(
        db, post, PostStatus.PUBLISHED,
        platform_post_id=result.id, platform_url=result.url
    )
    posts_counter.labels(platform=platform.value, status=PostStatus.PUBLISHED.value).inc()
    publish_logger.info(f"Post {post_id} published to {platform.value}: {result.url or result.id}")


def _fail(db: Session, post: Post, post_id: str, platform: Platform, message: str) -> None:
    posts_counter.labels(platform=platform.value, status=PostStatus.FAILED.value).inc()
    publish_logger.warning(f"Post {post_id} failed on {platform.value}: {message}")
    db_helpers.update_post_status(db, post, PostStatus.FAILED, error_message=message)


def _record_failure(db: Session, post: Post, post_id: str, platform: Platform, message: str) -> None:
    """Last attempt at a terminal row after an earlier write for this post was refused"""
    try:
        db_helpers.update_post_status(db, post, PostStatus.FAILED, error_message=message)
    except (SQLAlchemyError, ValueError) as e:
        db.rollback()
        publish_logger.error(f"Post {post_id} on {platform.value} could not be marked failed: {e}")
        return
    posts_counter.labels(platform=platform.value, status=PostStatus.FAILED.value).inc()


def list_posts(auth: AuthContext, db: Session, video_id: str = None, platform: str = None) -> List[Post]:
    return db_helpers.list_posts(db, auth.user_id, video_id=video_id, platform=platform)
