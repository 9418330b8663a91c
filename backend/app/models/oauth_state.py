"""OAuthState model"""
from sqlalchemy import Column, Integer, String, DateTime, Index
from datetime import datetime, timezone
from app.models.base import Base


class OAuthState(Base):
    """Single-use CSRF nonce binding an OAuth callback to the request that started it"""
    __tablename__ = "oauth_states"

    id = Column(Integer, primary_key=True, autoincrement=True)
    state_token = Column(String(128), unique=True, nullable=False, index=True)
    user_id = Column(String(255), nullable=False)
    platform = Column(String(50), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    __table_args__ = (
        Index('ix_oauth_states_expires_at', 'expires_at'),
    )
