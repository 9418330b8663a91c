"""Helpers shared by the platform publishers"""
import logging

import httpx

from app.core.config import settings
from app.core.exceptions import StorageError

publish_logger = logging.getLogger("publish")


async def download_video_bytes(client: httpx.AsyncClient, signed_url: str) -> bytes:
    """Fetch the stored video through its signed URL

    Raises:
        StorageError: If the object store does not return the bytes
    """
    try:
        response = await client.get(signed_url, timeout=settings.VENDOR_UPLOAD_TIMEOUT)
    except httpx.HTTPError as e:
        raise StorageError(f"Failed to download video from storage: {e}")
    if not response.is_success:
        raise StorageError(f"Failed to download video from storage: HTTP {response.status_code}")
    publish_logger.debug(f"Downloaded {len(response.content)} bytes from storage")
    return response.content


def format_platform_error(platform: str, error_message: str) -> str:
    """Prefix an error message with the platform name unless it already has it"""
    if error_message.lower().startswith(platform.lower()):
        return error_message
    return f"{platform}: {error_message}"
