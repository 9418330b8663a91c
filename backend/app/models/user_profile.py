"""UserProfile model"""
from sqlalchemy import Column, String, DateTime
from datetime import datetime, timezone
from app.models.base import Base


class UserProfile(Base):
    """Display name and avatar for a user (one row per user, created on first edit)"""
    __tablename__ = "user_profiles"

    user_id = Column(String(255), primary_key=True)
    full_name = Column(String(100))
    avatar_path = Column(String(512))  # object store key "avatars/<user_id>/<epoch_ms>.<ext>"
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
