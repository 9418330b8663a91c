"""Video model"""
import uuid
from sqlalchemy import Column, String, Text, DateTime, BigInteger, Index
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from app.models.base import Base


class Video(Base):
    """Uploaded video in the user's library"""
    __tablename__ = "videos"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(255), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    file_path = Column(String(512), nullable=False)  # object store key "<user_id>/<epoch_ms>.<ext>"
    file_name = Column(String(255), nullable=False)
    file_size = Column(BigInteger, nullable=False)
    mime_type = Column(String(100), nullable=False)
    status = Column(String(50), default="ready", nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    posts = relationship("Post", back_populates="video", cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (
        Index('ix_videos_user_created', 'user_id', 'created_at'),
    )
