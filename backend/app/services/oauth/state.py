"""Single-use OAuth state tokens (CSRF protection for callbacks)"""
import logging
import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import CsrfError
from app.db.helpers import (
    as_utc, create_oauth_state, delete_expired_oauth_states, delete_oauth_state, get_oauth_state
)

security_logger = logging.getLogger("security")


def issue_state(db: Session, user_id: str, platform: str) -> str:
    """Persist a fresh 256-bit state token bound to (user_id, platform)"""
    token = secrets.token_hex(32)
    expires_at = datetime.now(timezone.utc) + timedelta(seconds=settings.OAUTH_STATE_TTL)
    create_oauth_state(db, token, user_id, platform, expires_at)
    return token


def _sweep_expired(db: Session) -> None:
    swept = delete_expired_oauth_states(db)
    if swept:
        security_logger.debug(f"Swept {swept} expired OAuth states")


def consume_state(db: Session, state_token: str, platform: str, user_id: str) -> None:
    """Validate and delete a state token.

    The row is deleted (and committed) on every outcome that finds it, so a
    token can be presented at most once. Expired rows of other flows are
    swept on the way.

    Raises:
        CsrfError: code is invalid_state, state_expired or unauthorized
    """
    state = get_oauth_state(db, state_token, platform)
    if state is None:
        _sweep_expired(db)
        raise CsrfError("invalid_state")

    expired = as_utc(state.expires_at) < datetime.now(timezone.utc)
    owner = state.user_id
    delete_oauth_state(db, state)
    _sweep_expired(db)

    if expired:
        raise CsrfError("state_expired")
    if owner != user_id:
        security_logger.warning(
            f"OAuth state user mismatch - platform: {platform}, state owner: {owner}, session user: {user_id}"
        )
        raise CsrfError("unauthorized")


def discard_state(db: Session, state_token: str, platform: str) -> bool:
    """Delete a state token without validating it.

    Used when a callback is rejected before validation (vendor error, missing
    code, no session), so the token cannot be replayed afterwards.
    """
    state = get_oauth_state(db, state_token, platform)
    if state is not None:
        delete_oauth_state(db, state)
    _sweep_expired(db)
    return state is not None
