"""OAuth API routes for connecting YouTube, TikTok and Instagram accounts"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from app.core.exceptions import CrossPostError
from app.core.security import AuthContext, optional_auth, require_auth
from app.db.session import get_db
from app.models.enums import Platform
from app.services.oauth import service as oauth_service

logger = logging.getLogger("oauth")

router = APIRouter(prefix="/api", tags=["oauth"])


@router.get("/{platform}/connect")
def connect(platform: Platform, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    """Start the OAuth flow - redirects the browser to the platform's consent page"""
    url = oauth_service.initiate_connect(auth, platform, db)
    return RedirectResponse(url=url, status_code=302)


@router.get("/{platform}/callback")
async def callback(
    platform: Platform,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    auth: Optional[AuthContext] = Depends(optional_auth),
    db: Session = Depends(get_db)
):
    """OAuth callback - always redirects back to the dashboard with a success or error flag"""
    url = await oauth_service.handle_callback(auth, platform, code, state, error, db)
    return RedirectResponse(url=url, status_code=302)


@router.post("/{platform}/disconnect")
async def disconnect(platform: Platform, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    """Revoke and remove the platform connection"""
    try:
        await oauth_service.disconnect(auth, platform, db)
    except Exception as e:
        db.rollback()
        logger.error(f"Disconnect {platform.value} failed for user {auth.user_id}: {e}", exc_info=True)
        raise CrossPostError(f"Failed to disconnect {platform.display_name}")
    return {"success": True}
