"""SQLAlchemy models package - imports all models so they register with Base.metadata"""
from app.models.base import Base
from app.models.enums import Platform, PostStatus
from app.models.video import Video
from app.models.post import Post
from app.models.social_connection import SocialConnection
from app.models.oauth_state import OAuthState
from app.models.user_profile import UserProfile

# Export all for convenience
__all__ = [
    "Base", "Platform", "PostStatus", "Video", "Post", "SocialConnection", "OAuthState", "UserProfile"
]
