"""Account deletion - revoke platform access and remove all of a user's data"""
import asyncio
import logging
from typing import Dict

from sqlalchemy.orm import Session

from app.core.security import AuthContext
from app.db import helpers as db_helpers
from app.db.redis import delete_session
from app.services.http import vendor_client
from app.services.oauth.service import revoke_connection
from app.services.storage.object_store import ObjectStore

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("security")


def account_summary(auth: AuthContext, db: Session) -> Dict[str, int]:
    """What deleting the account would remove"""
    return db_helpers.count_user_data(db, auth.user_id)


async def delete_account(auth: AuthContext, db: Session, store: ObjectStore) -> Dict[str, int]:
    """Revoke every connection, delete stored files and all rows owned by the user.

    Revocation and file removal are best-effort; row deletion is not.
    """
    connections = db_helpers.list_connections(db, auth.user_id)
    if connections:
        async with vendor_client() as client:
            results = await asyncio.gather(
                *(revoke_connection(client, c) for c in connections),
                return_exceptions=True
            )
        for connection, result in zip(connections, results):
            if isinstance(result, BaseException):
                logger.warning(f"Revoking {connection.platform} for user {auth.user_id} failed: {result}")

    keys = [v.file_path for v in db_helpers.list_videos(db, auth.user_id)]
    profile = db_helpers.get_profile(db, auth.user_id)
    if profile is not None and profile.avatar_path:
        keys.append(profile.avatar_path)
    files_removed = await asyncio.to_thread(store.delete_objects, keys) if keys else 0

    counts = db_helpers.delete_user_data(db, auth.user_id)
    counts["files"] = files_removed

    if auth.session_id:
        delete_session(auth.session_id)
    security_logger.info(f"Account data deleted for user {auth.user_id}: {counts}")
    return counts
