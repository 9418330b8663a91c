"""Redis client for session lookup.

Sessions are written by the identity provider as ``session:<id>`` -> user id.
This service only reads them (and deletes them on account deletion).
"""
import redis
import logging
from typing import Optional
from app.core.config import settings

logger = logging.getLogger(__name__)

# Lazy initialization - no connection at import time
_client = None


def get_redis_client():
    """Get or create Redis client (lazy initialization)

    This prevents connection attempts during import, allowing mocks to be applied first.
    """
    global _client
    if _client is None:
        _client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _client


def get_session(session_id: str) -> Optional[str]:
    """Get user_id from session"""
    user_id = get_redis_client().get(f"session:{session_id}")
    return str(user_id) if user_id else None


def delete_session(session_id: str) -> None:
    """Delete session from Redis"""
    get_redis_client().delete(f"session:{session_id}")


def ping() -> bool:
    try:
        return bool(get_redis_client().ping())
    except redis.RedisError as e:
        logger.warning(f"Redis ping failed: {e}")
        return False
