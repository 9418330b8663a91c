"""Instagram Reels publishing: create container, poll until processed, publish"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx

from app.core.config import settings, INSTAGRAM_GRAPH_API_BASE
from app.core.exceptions import PublishTimeoutError, VendorError
from app.models.enums import PostStatus
from app.services.http import safe_json, vendor_error_message
from app.services.oauth.service import ConnectionCredentials
from app.services.publish.base import PublishRequest, PublishResult, StatusCallback, VideoFile, report

instagram_logger = logging.getLogger("instagram")

PLATFORM = "instagram"


def build_caption(request: PublishRequest) -> str:
    if request.description:
        return f"{request.title}\n\n{request.description}"
    return request.title


async def wait_for_container(
    client: httpx.AsyncClient,
    access_token: str,
    container_id: str,
    poll_interval: float,
    max_attempts: int,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> None:
    """Poll the container until FINISHED

    Raises:
        VendorError: If Instagram reports ERROR for the container
        PublishTimeoutError: If it is still not FINISHED after max_attempts polls
    """
    for attempt in range(max_attempts):
        await sleep(poll_interval)
        try:
            response = await client.get(
                f"{INSTAGRAM_GRAPH_API_BASE}/{container_id}",
                params={"fields": "status_code", "access_token": access_token}
            )
        except httpx.HTTPError as e:
            instagram_logger.warning(f"Container {container_id} status read failed (attempt {attempt + 1}): {e}")
            continue

        if not response.is_success:
            instagram_logger.warning(
                f"Container {container_id} status read failed (attempt {attempt + 1}): "
                f"{vendor_error_message(response)}"
            )
            continue

        status_code = (safe_json(response) or {}).get("status_code")
        instagram_logger.info(f"Container {container_id} status (attempt {attempt + 1}): {status_code}")
        if status_code == "FINISHED":
            return
        if status_code == "ERROR":
            raise VendorError(PLATFORM, "video processing failed")

    raise PublishTimeoutError(
        PLATFORM, f"video processing did not finish after {max_attempts} checks"
    )


async def publish(
    client: httpx.AsyncClient,
    creds: ConnectionCredentials,
    video: VideoFile,
    request: PublishRequest,
    signed_url: str,
    on_status: Optional[StatusCallback] = None,
    *,
    poll_interval: Optional[float] = None,
    max_attempts: Optional[int] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> PublishResult:
    """Publish a video as a Reel; Instagram fetches the bytes from signed_url itself"""
    if poll_interval is None:
        poll_interval = settings.INSTAGRAM_POLL_INTERVAL
    if max_attempts is None:
        max_attempts = settings.INSTAGRAM_POLL_MAX_ATTEMPTS
    ig_user_id = creds.platform_user_id

    # Step 1: create the media container
    container_response = await client.post(
        f"{INSTAGRAM_GRAPH_API_BASE}/{ig_user_id}/media",
        data={
            "media_type": "REELS",
            "video_url": signed_url,
            "caption": build_caption(request),
            "access_token": creds.access_token,
        }
    )
    if not container_response.is_success:
        raise VendorError(PLATFORM, f"container creation failed: {vendor_error_message(container_response)}")

    container_id = (safe_json(container_response) or {}).get("id")
    if not container_id:
        raise VendorError(PLATFORM, "container creation returned no id")
    instagram_logger.info(f"Created container {container_id} for video {video.id}")

    # Step 2: wait for Instagram to fetch and process the video
    await report(on_status, PostStatus.PROCESSING)
    await wait_for_container(client, creds.access_token, container_id, poll_interval, max_attempts, sleep)

    # Step 3: publish
    publish_response = await client.post(
        f"{INSTAGRAM_GRAPH_API_BASE}/{ig_user_id}/media_publish",
        data={"creation_id": container_id, "access_token": creds.access_token}
    )
    if not publish_response.is_success:
        raise VendorError(PLATFORM, f"publish failed: {vendor_error_message(publish_response)}")

    media_id = (safe_json(publish_response) or {}).get("id")
    if not media_id:
        raise VendorError(PLATFORM, "publish returned no media id")

    instagram_logger.info(f"Published video {video.id} to Instagram as {media_id}")
    return PublishResult(id=media_id, url=f"https://www.instagram.com/p/{media_id}/")
