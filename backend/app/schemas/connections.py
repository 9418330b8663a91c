"""Pydantic schemas for social connections (tokens are never serialized)"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ConnectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    platform: str
    platform_user_id: str
    platform_username: Optional[str] = None
    token_expires_at: Optional[datetime] = None
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None
