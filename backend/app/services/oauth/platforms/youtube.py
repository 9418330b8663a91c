"""YouTube (Google) OAuth: authorize, code exchange, channel lookup, refresh, revoke"""
import asyncio
from datetime import datetime, timezone
import logging
from urllib.parse import urlencode

import httpx
from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request as GoogleRequest
from google.oauth2.credentials import Credentials

from app.core.config import (
    settings, YOUTUBE_AUTH_URL, YOUTUBE_TOKEN_URL, YOUTUBE_REVOKE_URL,
    YOUTUBE_CHANNELS_URL, YOUTUBE_SCOPES
)
from app.core.exceptions import AccountNotFoundError, VendorError
from app.services.http import safe_json, vendor_error_message
from app.services.oauth.base import AccountInfo, OAuthProvider, TokenSet

youtube_logger = logging.getLogger("youtube")

PLATFORM = "youtube"


def is_configured() -> bool:
    return bool(settings.YOUTUBE_CLIENT_ID and settings.YOUTUBE_CLIENT_SECRET)


def authorize_url(state: str, redirect_uri: str) -> str:
    # prompt=consent makes Google return a refresh_token on every authorization
    params = {
        "client_id": settings.YOUTUBE_CLIENT_ID,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": " ".join(YOUTUBE_SCOPES),
        "access_type": "offline",
        "prompt": "consent",
        "state": state,
    }
    return f"{YOUTUBE_AUTH_URL}?{urlencode(params)}"


async def exchange_code(client: httpx.AsyncClient, code: str, redirect_uri: str) -> TokenSet:
    response = await client.post(YOUTUBE_TOKEN_URL, data={
        "code": code,
        "client_id": settings.YOUTUBE_CLIENT_ID,
        "client_secret": settings.YOUTUBE_CLIENT_SECRET,
        "redirect_uri": redirect_uri,
        "grant_type": "authorization_code",
    })
    data = safe_json(response)
    if not response.is_success or not isinstance(data, dict) or not data.get("access_token"):
        raise VendorError(PLATFORM, f"token exchange failed: {vendor_error_message(response)}")

    if not data.get("refresh_token"):
        youtube_logger.warning("YouTube token exchange returned no refresh_token")

    return TokenSet(
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token"),
        expires_in=data.get("expires_in"),
        scope=data.get("scope"),
    )


async def fetch_account(client: httpx.AsyncClient, tokens: TokenSet) -> AccountInfo:
    response = await client.get(
        YOUTUBE_CHANNELS_URL,
        params={"part": "snippet", "mine": "true"},
        headers={"Authorization": f"Bearer {tokens.access_token}"}
    )
    if not response.is_success:
        raise VendorError(PLATFORM, f"channel lookup failed: {vendor_error_message(response)}")

    items = (safe_json(response) or {}).get("items") or []
    if not items:
        raise AccountNotFoundError("No YouTube channel found for this Google account")

    channel = items[0]
    return AccountInfo(
        platform_user_id=channel["id"],
        username=(channel.get("snippet") or {}).get("title"),
    )


async def revoke(client: httpx.AsyncClient, access_token: str) -> None:
    response = await client.post(
        YOUTUBE_REVOKE_URL,
        params={"token": access_token},
        headers={"Content-Type": "application/x-www-form-urlencoded"}
    )
    if not response.is_success:
        raise VendorError(PLATFORM, f"revoke failed: {vendor_error_message(response)}")


def _refresh_credentials(refresh_token: str) -> Credentials:
    creds = Credentials(
        token=None,
        refresh_token=refresh_token,
        token_uri=YOUTUBE_TOKEN_URL,
        client_id=settings.YOUTUBE_CLIENT_ID,
        client_secret=settings.YOUTUBE_CLIENT_SECRET,
        scopes=YOUTUBE_SCOPES,
    )
    creds.refresh(GoogleRequest())
    return creds


async def refresh(client: httpx.AsyncClient, refresh_token: str) -> TokenSet:
    """Refresh through google-auth; its transport is blocking so run it in a thread"""
    try:
        creds = await asyncio.to_thread(_refresh_credentials, refresh_token)
    except RefreshError as e:
        raise VendorError(PLATFORM, f"token refresh failed: {e}")

    expires_in = None
    if creds.expiry is not None:
        # google-auth reports expiry as naive UTC
        expires_in = max(int((creds.expiry - datetime.now(timezone.utc).replace(tzinfo=None)).total_seconds()), 0)
    youtube_logger.info("Refreshed YouTube access token")
    return TokenSet(
        access_token=creds.token,
        refresh_token=creds.refresh_token or refresh_token,
        expires_in=expires_in,
    )


provider = OAuthProvider(
    platform=PLATFORM,
    scopes=YOUTUBE_SCOPES,
    is_configured=is_configured,
    authorize_url=authorize_url,
    exchange_code=exchange_code,
    fetch_account=fetch_account,
    revoke=revoke,
    refresh=refresh,
)
