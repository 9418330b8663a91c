"""Post model"""
import uuid
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, Index
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from app.models.base import Base


class Post(Base):
    """One per-platform publish attempt of a video"""
    __tablename__ = "posts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    video_id = Column(String(36), ForeignKey("videos.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    platform = Column(String(50), nullable=False)  # youtube, tiktok, instagram
    title = Column(String(255), nullable=False)
    description = Column(Text)
    tags = Column(JSON, default=list)
    status = Column(String(50), default="pending", nullable=False)
    platform_post_id = Column(String(255))
    platform_url = Column(String(1024))
    error_message = Column(Text)
    retry_count = Column(Integer, default=0, nullable=False)
    posted_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    video = relationship("Video", back_populates="posts")

    __table_args__ = (
        Index('ix_posts_user_created', 'user_id', 'created_at'),
    )
