"""OAuth connection manager - connect, callback, disconnect and credential loading"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import httpx
from sqlalchemy.orm import Session

from app.core.config import settings, callback_uri, dashboard_url
from app.core.exceptions import (
    AccountNotFoundError, ConfigurationError, CrossPostError, CsrfError, VendorError
)
from app.core.metrics import oauth_connections_counter
from app.core.security import AuthContext
from app.db import helpers as db_helpers
from app.db.helpers import as_utc
from app.models.enums import Platform
from app.models.social_connection import SocialConnection
from app.services.http import vendor_client
from app.services.oauth.registry import get_provider
from app.services.oauth.state import consume_state, discard_state, issue_state
from app.utils.encryption import decrypt, encrypt

logger = logging.getLogger("oauth")


@dataclass
class ConnectionCredentials:
    """Decrypted credentials handed to publishers"""
    platform: str
    platform_user_id: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None


def _require_configured(platform: Platform):
    provider = get_provider(platform)
    if not provider.is_configured():
        raise ConfigurationError(f"{platform.display_name} OAuth is not configured")
    return provider


# ============================================================================
# CONNECT
# ============================================================================

def initiate_connect(auth: AuthContext, platform: Platform, db: Session) -> str:
    """Issue a state token and return the vendor authorization URL

    Raises:
        ConfigurationError: If the platform's client credentials are missing
    """
    provider = _require_configured(platform)
    state = issue_state(db, auth.user_id, platform.value)
    logger.info(f"Starting {platform.value} OAuth for user {auth.user_id}")
    return provider.authorize_url(state, callback_uri(platform.value))


async def handle_callback(
    auth: Optional[AuthContext],
    platform: Platform,
    code: Optional[str],
    state: Optional[str],
    error: Optional[str],
    db: Session,
) -> str:
    """Complete an OAuth flow and return the dashboard URL to redirect to.

    Never raises; every failure becomes an ``error=<flag>`` query parameter.
    """
    flag = await _complete_callback(auth, platform, code, state, error, db)
    oauth_connections_counter.labels(platform=platform.value, result=flag or "connected").inc()
    if flag:
        return dashboard_url(error=flag)
    return dashboard_url(success=f"{platform.value}_connected")


def _discard(db: Session, state: str, platform: str) -> None:
    try:
        discard_state(db, state, platform)
    except Exception as e:
        logger.error(f"Could not discard {platform} OAuth state: {e}", exc_info=True)


async def _complete_callback(auth, platform, code, state, error, db) -> Optional[str]:
    p = platform.value

    if state and (error or not code or auth is None):
        # The flow ends here either way; the token must not stay redeemable
        _discard(db, state, p)

    if error:
        logger.warning(f"{p} authorization denied or failed: {error}")
        return f"{p}_auth_failed"
    if not code or not state:
        return "invalid_callback"
    if auth is None:
        return "unauthorized"

    try:
        consume_state(db, state, p, auth.user_id)
    except CsrfError as e:
        return e.code
    except Exception as e:
        logger.error(f"{p} OAuth state validation failed: {e}", exc_info=True)
        return f"{p}_connection_failed"

    try:
        provider = _require_configured(platform)
        redirect_uri = callback_uri(p)
        async with vendor_client() as client:
            tokens = await provider.exchange_code(client, code, redirect_uri)
            account = await provider.fetch_account(client, tokens)

        expires_at = None
        if tokens.expires_in:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(tokens.expires_in))

        db_helpers.upsert_connection(db, auth.user_id, p, {
            "platform_user_id": account.platform_user_id,
            "platform_username": account.username,
            "access_token": encrypt(account.access_token or tokens.access_token),
            "refresh_token": encrypt(tokens.refresh_token),
            "token_expires_at": expires_at,
            "scope": tokens.scope,
        })
    except AccountNotFoundError as e:
        logger.warning(f"{p} account not found for user {auth.user_id}: {e.message}")
        return f"{p}_account_not_found"
    except (CrossPostError, httpx.HTTPError) as e:
        logger.error(f"{p} connection failed for user {auth.user_id}: {e}")
        return f"{p}_connection_failed"
    except Exception as e:
        db.rollback()
        logger.error(f"{p} connection failed for user {auth.user_id}: {e}", exc_info=True)
        return f"{p}_connection_failed"

    logger.info(f"Connected {p} account {account.platform_user_id} for user {auth.user_id}")
    return None


# ============================================================================
# DISCONNECT
# ============================================================================

async def revoke_connection(client: httpx.AsyncClient, connection: SocialConnection) -> bool:
    """Best-effort token revocation. Returns whether the vendor accepted it."""
    provider = get_provider(Platform(connection.platform))
    if provider.revoke is None:
        return False
    try:
        access_token = decrypt(connection.access_token)
        await provider.revoke(client, access_token)
        return True
    except (CrossPostError, httpx.HTTPError, ValueError) as e:
        logger.warning(f"Failed to revoke {connection.platform} token for user {connection.user_id}: {e}")
        return False


async def disconnect(auth: AuthContext, platform: Platform, db: Session) -> None:
    """Revoke (best-effort) and delete the user's connection. Idempotent."""
    connection = db_helpers.get_connection(db, auth.user_id, platform.value, active_only=False)
    if connection is not None:
        async with vendor_client() as client:
            await revoke_connection(client, connection)

    if db_helpers.delete_connection(db, auth.user_id, platform.value):
        logger.info(f"Disconnected {platform.value} for user {auth.user_id}")


def list_connections(auth: AuthContext, db: Session) -> List[SocialConnection]:
    return db_helpers.list_connections(db, auth.user_id)


# ============================================================================
# CREDENTIALS
# ============================================================================

def load_credentials(connection: SocialConnection) -> ConnectionCredentials:
    """Decrypt a stored connection

    Raises:
        VendorError: If the stored tokens cannot be decrypted
    """
    try:
        access_token = decrypt(connection.access_token)
        refresh_token = decrypt(connection.refresh_token)
    except ValueError:
        raise VendorError(connection.platform, "stored credentials are unreadable, reconnect the account")
    return ConnectionCredentials(
        platform=connection.platform,
        platform_user_id=connection.platform_user_id,
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=as_utc(connection.token_expires_at),
    )


async def ensure_fresh_credentials(
    client: httpx.AsyncClient, connection: SocialConnection, db: Session
) -> ConnectionCredentials:
    """Credentials that will not expire mid-publish, refreshing them if needed

    Raises:
        VendorError: If the token is expired and cannot be refreshed
    """
    creds = load_credentials(connection)
    if creds.expires_at is None:
        return creds

    now = datetime.now(timezone.utc)
    if creds.expires_at - now > timedelta(seconds=settings.TOKEN_REFRESH_SKEW):
        return creds

    provider = get_provider(Platform(connection.platform))
    if provider.refresh is None or not creds.refresh_token:
        if creds.expires_at <= now:
            raise VendorError(connection.platform, "access token expired, reconnect the account")
        return creds

    tokens = await provider.refresh(client, creds.refresh_token)
    expires_at = now + timedelta(seconds=int(tokens.expires_in)) if tokens.expires_in else None
    db_helpers.update_connection_tokens(
        db, connection,
        access_token=encrypt(tokens.access_token),
        refresh_token=encrypt(tokens.refresh_token),
        token_expires_at=expires_at,
    )
    creds.access_token = tokens.access_token
    creds.refresh_token = tokens.refresh_token
    creds.expires_at = expires_at
    return creds


