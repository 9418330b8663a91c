"""Database helper functions. Every query is scoped by user_id."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.models.enums import ALLOWED_TRANSITIONS, PostStatus
from app.models.oauth_state import OAuthState
from app.models.post import Post
from app.models.social_connection import SocialConnection
from app.models.user_profile import UserProfile
from app.models.video import Video

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo on round-trip; treat naive timestamps as UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Social connections
# ---------------------------------------------------------------------------

def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"Upsert is not supported on {dialect}")
    return insert


def upsert_connection(db: Session, user_id: str, platform: str, values: Dict[str, Any]) -> SocialConnection:
    """Insert or update the (user_id, platform) connection in one statement.

    ``values`` holds the already-encrypted token columns and account fields.
    """
    insert = _insert_for(db)
    now = _now()
    row = dict(values, user_id=user_id, platform=platform, is_active=True, updated_at=now)
    stmt = insert(SocialConnection).values(created_at=now, **row)
    stmt = stmt.on_conflict_do_update(
        index_elements=[SocialConnection.user_id, SocialConnection.platform],
        set_={k: stmt.excluded[k] for k in row if k not in ("user_id", "platform")}
    )
    db.execute(stmt)
    db.commit()
    return get_connection(db, user_id, platform, active_only=False)


def get_connection(db: Session, user_id: str, platform: str, active_only: bool = True) -> Optional[SocialConnection]:
    query = db.query(SocialConnection).filter(
        SocialConnection.user_id == user_id,
        SocialConnection.platform == platform
    )
    if active_only:
        query = query.filter(SocialConnection.is_active.is_(True))
    return query.first()


def list_connections(db: Session, user_id: str) -> List[SocialConnection]:
    return db.query(SocialConnection).filter(
        SocialConnection.user_id == user_id,
        SocialConnection.is_active.is_(True)
    ).order_by(SocialConnection.platform).all()


def update_connection_tokens(db: Session, connection: SocialConnection, **fields) -> SocialConnection:
    for key, value in fields.items():
        setattr(connection, key, value)
    connection.updated_at = _now()
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(connection)
    return connection


def delete_connection(db: Session, user_id: str, platform: str) -> bool:
    """Delete the user's connection for platform. Returns whether a row existed."""
    deleted = db.query(SocialConnection).filter(
        SocialConnection.user_id == user_id,
        SocialConnection.platform == platform
    ).delete(synchronize_session=False)
    db.commit()
    return deleted > 0


# ---------------------------------------------------------------------------
# OAuth states
# ---------------------------------------------------------------------------

def create_oauth_state(db: Session, state_token: str, user_id: str, platform: str, expires_at: datetime) -> OAuthState:
    state = OAuthState(state_token=state_token, user_id=user_id, platform=platform, expires_at=expires_at)
    db.add(state)
    db.commit()
    db.refresh(state)
    return state


def get_oauth_state(db: Session, state_token: str, platform: str) -> Optional[OAuthState]:
    return db.query(OAuthState).filter(
        OAuthState.state_token == state_token,
        OAuthState.platform == platform
    ).first()


def delete_oauth_state(db: Session, state: OAuthState) -> None:
    db.delete(state)
    db.commit()


def delete_expired_oauth_states(db: Session) -> int:
    deleted = db.query(OAuthState).filter(OAuthState.expires_at < _now()).delete(synchronize_session=False)
    db.commit()
    return deleted


# ---------------------------------------------------------------------------
# Videos
# ---------------------------------------------------------------------------

def add_video(db: Session, user_id: str, **fields) -> Video:
    video = Video(user_id=user_id, **fields)
    db.add(video)
    db.commit()
    db.refresh(video)
    return video


def get_video(db: Session, user_id: str, video_id: str) -> Optional[Video]:
    return db.query(Video).filter(Video.id == video_id, Video.user_id == user_id).first()


def list_videos(db: Session, user_id: str) -> List[Video]:
    return db.query(Video).filter(Video.user_id == user_id).order_by(Video.created_at.desc()).all()


def delete_video(db: Session, video: Video) -> None:
    db.query(Post).filter(Post.video_id == video.id, Post.user_id == video.user_id).delete(synchronize_session=False)
    db.delete(video)
    db.commit()


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------

def create_posts(db: Session, user_id: str, video_id: str, entries: List[Dict[str, Any]]) -> List[Post]:
    """Insert one pending post per entry (platform, title, description, tags) in one commit"""
    posts = [
        Post(
            user_id=user_id,
            video_id=video_id,
            platform=entry["platform"],
            title=entry["title"],
            description=entry.get("description"),
            tags=list(entry.get("tags") or []),
            status=PostStatus.PENDING.value
        )
        for entry in entries
    ]
    try:
        db.add_all(posts)
        db.commit()
    except Exception:
        db.rollback()
        raise
    for post in posts:
        db.refresh(post)
    return posts


def update_post_status(db: Session, post: Post, status: PostStatus, **fields) -> Post:
    """Move a post forward in its lifecycle.

    Raises:
        ValueError: If the transition is not allowed (terminal states are final)
    """
    current = PostStatus(post.status)
    if status not in ALLOWED_TRANSITIONS[current]:
        raise ValueError(f"Illegal post transition {current.value} -> {status.value}")

    post.status = status.value
    if status == PostStatus.PUBLISHED:
        post.platform_post_id = fields.get("platform_post_id")
        post.platform_url = fields.get("platform_url")
        post.posted_at = _now()
        post.error_message = None
    elif status == PostStatus.FAILED:
        post.error_message = fields.get("error_message")
    post.updated_at = _now()
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(post)
    return post


def list_posts(db: Session, user_id: str, video_id: Optional[str] = None,
               platform: Optional[str] = None) -> List[Post]:
    query = db.query(Post).filter(Post.user_id == user_id)
    if video_id:
        query = query.filter(Post.video_id == video_id)
    if platform:
        query = query.filter(Post.platform == platform)
    return query.order_by(Post.created_at.desc()).all()


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

def get_profile(db: Session, user_id: str) -> Optional[UserProfile]:
    return db.query(UserProfile).filter(UserProfile.user_id == user_id).first()


def upsert_profile(db: Session, user_id: str, values: Dict[str, Any]) -> UserProfile:
    """Create the profile row on first edit, otherwise update only the given columns"""
    insert = _insert_for(db)
    now = _now()
    row = dict(values, user_id=user_id, updated_at=now)
    stmt = insert(UserProfile).values(created_at=now, **row)
    stmt = stmt.on_conflict_do_update(
        index_elements=[UserProfile.user_id],
        set_={k: stmt.excluded[k] for k in row if k != "user_id"}
    )
    try:
        db.execute(stmt)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return get_profile(db, user_id)


# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------

def count_user_data(db: Session, user_id: str) -> Dict[str, int]:
    return {
        "videos": db.query(Video).filter(Video.user_id == user_id).count(),
        "posts": db.query(Post).filter(Post.user_id == user_id).count(),
        "connections": db.query(SocialConnection).filter(SocialConnection.user_id == user_id).count(),
    }


def delete_user_data(db: Session, user_id: str) -> Dict[str, int]:
    """Delete every row owned by user_id in one transaction"""
    try:
        counts = {
            "posts": db.query(Post).filter(Post.user_id == user_id).delete(synchronize_session=False),
            "videos": db.query(Video).filter(Video.user_id == user_id).delete(synchronize_session=False),
            "connections": db.query(SocialConnection).filter(
                SocialConnection.user_id == user_id).delete(synchronize_session=False),
            "oauth_states": db.query(OAuthState).filter(
                OAuthState.user_id == user_id).delete(synchronize_session=False),
            "profiles": db.query(UserProfile).filter(
                UserProfile.user_id == user_id).delete(synchronize_session=False),
        }
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Deleted data for user {user_id}: {counts}")
    return counts
