"""Types shared by the per-platform OAuth providers"""
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

import httpx


@dataclass
class TokenSet:
    """Tokens returned by a vendor token endpoint"""
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None  # seconds
    scope: Optional[str] = None


@dataclass
class AccountInfo:
    """Vendor identity resolved after the code exchange.

    ``access_token`` overrides the exchanged token when the platform publishes
    with a different credential (Instagram publishes with the Page token).
    """
    platform_user_id: str
    username: Optional[str] = None
    access_token: Optional[str] = None


@dataclass(frozen=True)
class OAuthProvider:
    """Capabilities of one platform's OAuth integration.

    ``revoke`` and ``refresh`` are None where the platform offers no such call.
    """
    platform: str
    scopes: List[str]
    is_configured: Callable[[], bool]
    authorize_url: Callable[[str, str], str]
    exchange_code: Callable[[httpx.AsyncClient, str, str], Awaitable[TokenSet]]
    fetch_account: Callable[[httpx.AsyncClient, TokenSet], Awaitable[AccountInfo]]
    revoke: Optional[Callable[[httpx.AsyncClient, str], Awaitable[None]]] = None
    refresh: Optional[Callable[[httpx.AsyncClient, str], Awaitable[TokenSet]]] = None
