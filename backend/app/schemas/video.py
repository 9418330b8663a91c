"""Pydantic schemas for video operations"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class VideoResponse(BaseModel):
    """Video response schema"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    file_path: str
    file_name: str
    file_size: int
    mime_type: str
    status: str
    created_at: datetime
