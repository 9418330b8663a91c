"""SocialConnection model"""
from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, UniqueConstraint
from datetime import datetime, timezone
from app.models.base import Base


class SocialConnection(Base):
    """OAuth credentials linking a user to one platform account (tokens encrypted)"""
    __tablename__ = "social_connections"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, index=True)
    platform = Column(String(50), nullable=False)
    platform_user_id = Column(String(255), nullable=False)
    platform_username = Column(String(255))
    access_token = Column(Text, nullable=False)  # Encrypted
    refresh_token = Column(Text)  # Encrypted
    token_expires_at = Column(DateTime(timezone=True))
    scope = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint('user_id', 'platform', name='uq_social_connections_user_platform'),
    )
