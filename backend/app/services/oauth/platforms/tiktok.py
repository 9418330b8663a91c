"""TikTok OAuth: authorize, code exchange, user info, refresh, revoke"""
import logging
from urllib.parse import urlencode

import httpx

from app.core.config import (
    settings, TIKTOK_AUTH_URL, TIKTOK_TOKEN_URL, TIKTOK_REVOKE_URL,
    TIKTOK_USER_INFO_URL, TIKTOK_SCOPES
)
from app.core.exceptions import AccountNotFoundError, VendorError
from app.services.http import safe_json, vendor_error_message
from app.services.oauth.base import AccountInfo, OAuthProvider, TokenSet

tiktok_logger = logging.getLogger("tiktok")

PLATFORM = "tiktok"


def is_configured() -> bool:
    return bool(settings.TIKTOK_CLIENT_KEY and settings.TIKTOK_CLIENT_SECRET)


def authorize_url(state: str, redirect_uri: str) -> str:
    params = {
        "client_key": settings.TIKTOK_CLIENT_KEY,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": ",".join(TIKTOK_SCOPES),
        "state": state,
    }
    return f"{TIKTOK_AUTH_URL}?{urlencode(params)}"


def _parse_token_response(response: httpx.Response, action: str) -> TokenSet:
    # TikTok answers 200 with an error body on bad codes, so access_token is the real signal
    data = safe_json(response)
    if not response.is_success or not isinstance(data, dict) or not data.get("access_token"):
        raise VendorError(PLATFORM, f"{action} failed: {vendor_error_message(response)}")
    return TokenSet(
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token"),
        expires_in=data.get("expires_in"),
        scope=data.get("scope"),
    )


async def exchange_code(client: httpx.AsyncClient, code: str, redirect_uri: str) -> TokenSet:
    response = await client.post(
        TIKTOK_TOKEN_URL,
        data={
            "client_key": settings.TIKTOK_CLIENT_KEY,
            "client_secret": settings.TIKTOK_CLIENT_SECRET,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": redirect_uri,
        },
        headers={"Cache-Control": "no-cache"}
    )
    return _parse_token_response(response, "token exchange")


async def fetch_account(client: httpx.AsyncClient, tokens: TokenSet) -> AccountInfo:
    response = await client.get(
        TIKTOK_USER_INFO_URL,
        params={"fields": "open_id,display_name"},
        headers={"Authorization": f"Bearer {tokens.access_token}"}
    )
    if not response.is_success:
        raise VendorError(PLATFORM, f"user info failed: {vendor_error_message(response)}")

    user = ((safe_json(response) or {}).get("data") or {}).get("user") or {}
    if not user.get("open_id"):
        raise AccountNotFoundError("No TikTok user returned for this authorization")
    return AccountInfo(platform_user_id=user["open_id"], username=user.get("display_name"))


async def revoke(client: httpx.AsyncClient, access_token: str) -> None:
    response = await client.post(TIKTOK_REVOKE_URL, data={
        "client_key": settings.TIKTOK_CLIENT_KEY,
        "client_secret": settings.TIKTOK_CLIENT_SECRET,
        "token": access_token,
    })
    if not response.is_success:
        raise VendorError(PLATFORM, f"revoke failed: {vendor_error_message(response)}")


async def refresh(client: httpx.AsyncClient, refresh_token: str) -> TokenSet:
    response = await client.post(
        TIKTOK_TOKEN_URL,
        data={
            "client_key": settings.TIKTOK_CLIENT_KEY,
            "client_secret": settings.TIKTOK_CLIENT_SECRET,
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        },
        headers={"Cache-Control": "no-cache"}
    )
    tokens = _parse_token_response(response, "token refresh")
    # TikTok may rotate the refresh token; keep the old one only if it did not
    if not tokens.refresh_token:
        tokens.refresh_token = refresh_token
    tiktok_logger.info("Refreshed TikTok access token")
    return tokens


provider = OAuthProvider(
    platform=PLATFORM,
    scopes=TIKTOK_SCOPES,
    is_configured=is_configured,
    authorize_url=authorize_url,
    exchange_code=exchange_code,
    fetch_account=fetch_account,
    revoke=revoke,
    refresh=refresh,
)
