from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    message: str
    type: str
    read: bool
    data: Optional[Dict[str, Any]] = None
    created_at: datetime


class UnreadCount(BaseModel):
    count: int


class DeviceRegistration(BaseModel):
    token: str = Field(..., min_length=1, max_length=512)
    platform: str = Field("web", max_length=32)
