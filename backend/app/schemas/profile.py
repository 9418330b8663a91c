"""Pydantic schemas for the user profile"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UpdateProfileRequest(BaseModel):
    full_name: Optional[str] = None


class ProfileResponse(BaseModel):
    user_id: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    updated_at: Optional[datetime] = None
