"""TikTok publishing via the Content Posting API (direct post, single chunk)"""
import logging
from typing import Optional

import httpx

from app.core.config import settings, TIKTOK_INIT_UPLOAD_URL, TIKTOK_STATUS_URL
from app.core.exceptions import VendorError
from app.models.enums import PostStatus
from app.services.http import safe_json, vendor_error_message
from app.services.oauth.service import ConnectionCredentials
from app.services.publish.base import PublishRequest, PublishResult, StatusCallback, VideoFile, report
from app.services.publish.helpers import download_video_bytes

tiktok_logger = logging.getLogger("tiktok")

PLATFORM = "tiktok"


async def fetch_share_url(client: httpx.AsyncClient, access_token: str, publish_id: str) -> str:
    """Share URL of a published video, or "" when TikTok cannot say yet"""
    try:
        response = await client.get(
            f"{TIKTOK_STATUS_URL}/{publish_id}/",
            headers={"Authorization": f"Bearer {access_token}"}
        )
    except httpx.HTTPError as e:
        tiktok_logger.warning(f"TikTok status read failed for {publish_id}: {e}")
        return ""

    if not response.is_success:
        tiktok_logger.warning(
            f"TikTok status read failed for {publish_id}: {vendor_error_message(response)}"
        )
        return ""
    return ((safe_json(response) or {}).get("data") or {}).get("share_url") or ""


async def publish(
    client: httpx.AsyncClient,
    creds: ConnectionCredentials,
    video: VideoFile,
    request: PublishRequest,
    signed_url: str,
    on_status: Optional[StatusCallback] = None,
) -> PublishResult:
    """Post a video publicly to the connected TikTok account"""
    data = await download_video_bytes(client, signed_url)
    video_size = len(data)
    auth_header = {"Authorization": f"Bearer {creds.access_token}"}

    # Step 1: initialize the post
    init_response = await client.post(
        TIKTOK_INIT_UPLOAD_URL,
        json={
            "post_info": {
                "title": request.title,
                "description": request.description or "",
                "privacy_level": "PUBLIC_TO_EVERYONE",
            },
            "source_info": {
                "source": "FILE_UPLOAD",
                "video_size": video_size,
                "chunk_size": video_size,
                "total_chunk_count": 1,
            },
        },
        headers={**auth_header, "Content-Type": "application/json; charset=UTF-8"}
    )
    if not init_response.is_success:
        raise VendorError(PLATFORM, f"publish init failed: {vendor_error_message(init_response)}")

    init_data = (safe_json(init_response) or {}).get("data") or {}
    upload_url = init_data.get("upload_url")
    publish_id = init_data.get("publish_id")
    if not upload_url or not publish_id:
        raise VendorError(PLATFORM, "publish init returned no upload_url or publish_id")

    # Step 2: upload the bytes
    await report(on_status, PostStatus.UPLOADING)
    tiktok_logger.info(f"Uploading {video_size} bytes of video {video.id} to TikTok ({publish_id})")
    upload_response = await client.put(
        upload_url,
        content=data,
        headers={
            "Content-Type": video.mime_type,
            "Content-Range": f"bytes 0-{video_size - 1}/{video_size}",
        },
        timeout=settings.VENDOR_UPLOAD_TIMEOUT
    )
    if not upload_response.is_success:
        raise VendorError(PLATFORM, f"upload failed: {vendor_error_message(upload_response)}")

    # Step 3: read the status once; TikTok keeps processing after this
    await report(on_status, PostStatus.PROCESSING)
    share_url = await fetch_share_url(client, creds.access_token, publish_id)

    tiktok_logger.info(f"Published video {video.id} to TikTok as {publish_id}")
    return PublishResult(id=publish_id, url=share_url)
