from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class WorkerPublicProfile(BaseModel):
    """What clients see about a worker."""
    user_id: UUID
    full_name: Optional[str] = None
    bio: Optional[str] = None
    is_available: bool
    average_rating: float = Field(..., description="Average review rating, 0 when unrated")
    review_count: int
    completed_jobs: int


class LocationUpdate(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class AvailabilityUpdate(BaseModel):
    is_available: bool


class WorkerStatus(BaseModel):
    is_available: bool
    last_lat: Optional[float] = None
    last_lng: Optional[float] = None
    location_updated_at: Optional[datetime] = None
