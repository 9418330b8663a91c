"""Authentication dependencies and API access logging"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from fastapi import Request
from app.core.exceptions import UnauthorizedError
from app.db.redis import get_session

security_logger = logging.getLogger("security")
api_access_logger = logging.getLogger("api_access")

SESSION_COOKIE = "session_id"


@dataclass(frozen=True)
class AuthContext:
    """Authenticated caller, passed explicitly into every service call"""
    user_id: str
    session_id: Optional[str] = None


def _resolve_session(request: Request) -> Optional[AuthContext]:
    session_id = request.cookies.get(SESSION_COOKIE)
    if not session_id:
        return None
    user_id = get_session(session_id)
    if not user_id:
        return None
    return AuthContext(user_id=str(user_id), session_id=session_id)


def require_auth(request: Request) -> AuthContext:
    """Dependency: Require authentication, return the caller's AuthContext"""
    session_id = request.cookies.get(SESSION_COOKIE)
    if not session_id:
        raise UnauthorizedError("Unauthorized")

    auth = _resolve_session(request)
    if auth is None:
        raise UnauthorizedError("Session expired. Please log in again.")
    return auth


def optional_auth(request: Request) -> Optional[AuthContext]:
    """Dependency: AuthContext when a valid session exists, otherwise None.

    Used by OAuth callbacks, which must redirect instead of answering 401.
    """
    return _resolve_session(request)


def get_client_ip(request: Request) -> str:
    client_ip = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    if not client_ip:
        client_ip = request.client.host if request.client else "unknown"
    return client_ip


def log_api_access(
    request: Request,
    session_id: Optional[str] = None,
    status_code: int = 200,
    error: Optional[str] = None,
    duration_ms: Optional[float] = None
):
    """Log detailed API access information"""
    path = request.url.path
    query = str(request.url.query) if request.url.query else None
    # OAuth callbacks carry authorization codes in the query string
    if query and path.endswith("/callback"):
        query = "[redacted]"

    log_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "method": request.method,
        "path": path,
        "query": query,
        "session_id": session_id[:16] + "..." if session_id else None,
        "client_ip": get_client_ip(request),
        "user_agent": request.headers.get("User-Agent", "unknown"),
        "status_code": status_code,
        "duration_ms": round(duration_ms, 1) if duration_ms is not None else None,
        "error": error
    }

    if error or status_code >= 400:
        api_access_logger.warning(f"API Access: {json.dumps(log_data)}")
    else:
        api_access_logger.info(f"API Access: {json.dumps(log_data)}")
