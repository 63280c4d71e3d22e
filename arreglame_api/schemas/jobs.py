from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from arreglame_api.db.models.enums import DifficultyLevel


class JobCreate(BaseModel):
    """Client request for a service."""
    category_slug: str = Field(..., description="Catalog slug, e.g. corte-pasto")
    description: str = Field(..., min_length=3)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    square_meters: float = Field(..., gt=0, le=100_000, allow_inf_nan=False)
    address: Optional[str] = None
    image_before: Optional[str] = Field(None, description="Base64 image or data URL of the area before the work")
    scheduled_at: Optional[datetime] = None
    idempotency_key: Optional[str] = Field(None, max_length=128)


class JobRead(BaseModel):
    """Job as seen by a participant; start_pin is only populated for the client."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID
    worker_id: Optional[UUID] = None
    category_id: UUID
    status: str
    version: int
    description: str
    address: Optional[str] = None
    latitude: float
    longitude: float
    square_meters: float
    pricing_engine: Optional[str] = None
    difficulty_score: Optional[float] = None
    estimated_hours: Optional[float] = None
    estimation: dict = Field(default_factory=dict)
    currency: str
    total_amount: Decimal
    worker_net: Decimal
    platform_commission: Decimal
    taxes: Decimal
    extra_increment: Decimal = Decimal("0")
    increment_count: int = 0
    start_pin: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    warranty_expires_at: Optional[datetime] = None
    payout_released_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancellation_fee: Optional[Decimal] = None
    extra_time_minutes: Optional[int] = None
    extra_time_reason: Optional[str] = None
    extra_time_status: Optional[str] = None
    audit_feedback: Optional[str] = None
    audit_confidence: Optional[float] = None
    created_at: datetime


class NearbyJob(BaseModel):
    job: JobRead
    distance_km: float


class AcceptJobRequest(BaseModel):
    expected_version: Optional[int] = Field(None, description="Version the worker last saw")


class StartJobRequest(BaseModel):
    pin: str = Field(..., min_length=4, max_length=4)


class CompleteJobRequest(BaseModel):
    image_after: str = Field(..., description="Base64 image or data URL of the finished work")
    evidence_images: List[str] = Field(default_factory=list)


class AuditResult(BaseModel):
    approved: bool
    confidence: float = Field(..., ge=0, le=1)
    feedback: str


class CompleteJobResponse(BaseModel):
    audit: AuditResult
    job: JobRead


class CancelJobRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class CancelJobResponse(BaseModel):
    job: JobRead
    fee: Decimal
    refund: Decimal
    currency: str


class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


class ReviewRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    job_id: UUID
    author_id: UUID
    target_id: UUID
    rating: int
    comment: Optional[str] = None
    created_at: datetime


class TicketCreate(BaseModel):
    category: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)


class TicketRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    job_id: UUID
    reporter_id: UUID
    category: str
    priority: str
    status: str
    subject: str
    description: str
    created_at: datetime


class PriceIncrementResponse(BaseModel):
    job: JobRead
    increment: Decimal
    increment_count: int
    max_increment_count: int
    can_increment_again: bool


class ExtraTimeRequest(BaseModel):
    minutes: int = Field(..., gt=0)
    reason: str = Field(..., min_length=1)


class ExtraTimeResponse(BaseModel):
    approved: bool


class JobHistory(BaseModel):
    """A participant's view of a job with their review and the open ticket."""
    job: JobRead
    my_review: Optional[ReviewRead] = None
    active_ticket: Optional[TicketRead] = None


class ChatMessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


class ChatMessageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    job_id: UUID
    sender_id: UUID
    content: str
    created_at: datetime


class QuickQuote(BaseModel):
    square_meters: float
    difficulty: DifficultyLevel
    multiplier: float
    total: Decimal
    worker_net: Decimal
    platform_commission: Decimal
    taxes: Decimal
    currency: str
