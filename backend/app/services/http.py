"""HTTP client factory and response helpers for vendor APIs"""
from typing import Any, Optional
import httpx

from app.core.config import settings


def vendor_client(timeout: Optional[float] = None) -> httpx.AsyncClient:
    """AsyncClient for platform API calls; every call gets an explicit timeout"""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout if timeout is not None else settings.VENDOR_HTTP_TIMEOUT),
        follow_redirects=False
    )


def safe_json(response: httpx.Response) -> Any:
    """Parsed JSON body, or None if the body is not JSON"""
    try:
        return response.json()
    except ValueError:
        return None


def vendor_error_message(response: httpx.Response) -> str:
    """Best human-readable message from a vendor error body.

    Understands the Graph API ``{"error": {"message"}}`` shape, the TikTok
    ``{"error": {"code", "message"}}`` shape and OAuth ``error_description``.
    """
    data = safe_json(response)
    if isinstance(data, dict):
        error_obj = data.get("error")
        if isinstance(error_obj, dict):
            message = error_obj.get("message")
            if message:
                return str(message)
        if data.get("error_description"):
            return str(data["error_description"])
        if isinstance(error_obj, str) and error_obj:
            return error_obj
    return f"HTTP {response.status_code}"
