"""Pydantic schemas for cross-posting"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import Platform


class PlatformPostRequest(BaseModel):
    """Per-platform metadata for one publish attempt"""
    platform: Platform
    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    tags: List[str] = Field(default_factory=list)


class CreatePostsRequest(BaseModel):
    video_id: str = Field(min_length=1)
    platforms: List[PlatformPostRequest] = Field(min_length=1)


class PostVideoSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    title: str
    file_name: str


class PostResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    video_id: str
    user_id: str
    platform: str
    title: str
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    status: str
    platform_post_id: Optional[str] = None
    platform_url: Optional[str] = None
    error_message: Optional[str] = None
    retry_count: int = 0
    posted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class PostWithVideoResponse(PostResponse):
    videos: Optional[PostVideoSummary] = Field(default=None, validation_alias="video")
