"""Instagram OAuth through Facebook Login.

The code is exchanged for a short-lived user token, then for a long-lived one.
Publishing uses the token of the first Facebook Page that has an Instagram
business account linked to it. Instagram offers no revoke or refresh call:
removing the app's permissions on Facebook revokes access.
"""
import logging
from urllib.parse import urlencode

import httpx

from app.core.config import (
    settings, INSTAGRAM_AUTH_URL, INSTAGRAM_TOKEN_URL, INSTAGRAM_GRAPH_API_BASE,
    INSTAGRAM_SCOPES
)
from app.core.exceptions import AccountNotFoundError, VendorError
from app.services.http import safe_json, vendor_error_message
from app.services.oauth.base import AccountInfo, OAuthProvider, TokenSet

instagram_logger = logging.getLogger("instagram")

PLATFORM = "instagram"


def is_configured() -> bool:
    return bool(settings.INSTAGRAM_CLIENT_ID and settings.INSTAGRAM_CLIENT_SECRET)


def authorize_url(state: str, redirect_uri: str) -> str:
    params = {
        "client_id": settings.INSTAGRAM_CLIENT_ID,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": ",".join(INSTAGRAM_SCOPES),
        "state": state,
    }
    return f"{INSTAGRAM_AUTH_URL}?{urlencode(params)}"


async def _get_token(client: httpx.AsyncClient, params: dict, action: str) -> dict:
    response = await client.get(INSTAGRAM_TOKEN_URL, params=params)
    data = safe_json(response)
    if not response.is_success or not isinstance(data, dict) or not data.get("access_token"):
        raise VendorError(PLATFORM, f"{action} failed: {vendor_error_message(response)}")
    return data


async def exchange_code(client: httpx.AsyncClient, code: str, redirect_uri: str) -> TokenSet:
    short_lived = await _get_token(client, {
        "client_id": settings.INSTAGRAM_CLIENT_ID,
        "client_secret": settings.INSTAGRAM_CLIENT_SECRET,
        "redirect_uri": redirect_uri,
        "code": code,
    }, "token exchange")

    long_lived = await _get_token(client, {
        "grant_type": "fb_exchange_token",
        "client_id": settings.INSTAGRAM_CLIENT_ID,
        "client_secret": settings.INSTAGRAM_CLIENT_SECRET,
        "fb_exchange_token": short_lived["access_token"],
    }, "long-lived token exchange")

    # Long-lived tokens are treated as valid for a fixed window
    return TokenSet(
        access_token=long_lived["access_token"],
        expires_in=settings.INSTAGRAM_TOKEN_LIFETIME_DAYS * 24 * 60 * 60,
        scope=",".join(INSTAGRAM_SCOPES),
    )


async def fetch_account(client: httpx.AsyncClient, tokens: TokenSet) -> AccountInfo:
    response = await client.get(
        f"{INSTAGRAM_GRAPH_API_BASE}/me/accounts",
        params={
            "fields": "id,name,access_token,instagram_business_account",
            "access_token": tokens.access_token,
        }
    )
    if not response.is_success:
        raise VendorError(PLATFORM, f"page lookup failed: {vendor_error_message(response)}")

    pages = (safe_json(response) or {}).get("data") or []
    page = next((p for p in pages if p.get("instagram_business_account")), None)
    if page is None:
        raise AccountNotFoundError(
            "No Instagram business account is linked to any of your Facebook Pages"
        )

    ig_user_id = page["instagram_business_account"]["id"]
    page_token = page.get("access_token") or tokens.access_token
    instagram_logger.info(f"Using Facebook Page {page.get('id')} for Instagram account {ig_user_id}")

    profile = await client.get(
        f"{INSTAGRAM_GRAPH_API_BASE}/{ig_user_id}",
        params={"fields": "username,name", "access_token": page_token}
    )
    username = None
    if profile.is_success:
        data = safe_json(profile) or {}
        username = data.get("username") or data.get("name")
    else:
        instagram_logger.warning(f"Instagram profile lookup failed: {vendor_error_message(profile)}")

    return AccountInfo(platform_user_id=ig_user_id, username=username, access_token=page_token)


provider = OAuthProvider(
    platform=PLATFORM,
    scopes=INSTAGRAM_SCOPES,
    is_configured=is_configured,
    authorize_url=authorize_url,
    exchange_code=exchange_code,
    fetch_account=fetch_account,
)
