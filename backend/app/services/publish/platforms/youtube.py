"""YouTube publishing via the resumable upload protocol"""
import logging
from typing import Optional

import httpx

from app.core.config import settings, YOUTUBE_UPLOAD_URL
from app.core.exceptions import VendorError
from app.models.enums import PostStatus
from app.services.http import safe_json, vendor_error_message
from app.services.oauth.service import ConnectionCredentials
from app.services.publish.base import PublishRequest, PublishResult, StatusCallback, VideoFile, report
from app.services.publish.helpers import download_video_bytes

youtube_logger = logging.getLogger("youtube")

PLATFORM = "youtube"


async def publish(
    client: httpx.AsyncClient,
    creds: ConnectionCredentials,
    video: VideoFile,
    request: PublishRequest,
    signed_url: str,
    on_status: Optional[StatusCallback] = None,
) -> PublishResult:
    """Upload a video to the connected channel as a public video"""
    metadata = {
        "snippet": {
            "title": request.title,
            "description": request.description or "",
            "tags": list(request.tags or []),
        },
        "status": {"privacyStatus": "public"},
    }

    # Step 1: open a resumable session
    init_response = await client.post(
        YOUTUBE_UPLOAD_URL,
        params={"uploadType": "resumable", "part": "snippet,status"},
        json=metadata,
        headers={
            "Authorization": f"Bearer {creds.access_token}",
            "X-Upload-Content-Type": video.mime_type,
            "X-Upload-Content-Length": str(video.file_size),
        }
    )
    if not init_response.is_success:
        raise VendorError(PLATFORM, f"upload init failed: {vendor_error_message(init_response)}")

    upload_url = init_response.headers.get("Location")
    if not upload_url:
        raise VendorError(PLATFORM, "upload init returned no upload location")

    # Step 2: send the bytes
    await report(on_status, PostStatus.UPLOADING)
    data = await download_video_bytes(client, signed_url)
    youtube_logger.info(f"Uploading {len(data)} bytes of video {video.id} to YouTube")

    upload_response = await client.put(
        upload_url,
        content=data,
        headers={"Content-Type": video.mime_type},
        timeout=settings.VENDOR_UPLOAD_TIMEOUT
    )
    if not upload_response.is_success:
        raise VendorError(PLATFORM, f"upload failed: {vendor_error_message(upload_response)}")

    youtube_video_id = (safe_json(upload_response) or {}).get("id")
    if not youtube_video_id:
        raise VendorError(PLATFORM, "upload response contained no video id")

    youtube_logger.info(f"Published video {video.id} to YouTube as {youtube_video_id}")
    return PublishResult(
        id=youtube_video_id,
        url=f"https://www.youtube.com/watch?v={youtube_video_id}"
    )
