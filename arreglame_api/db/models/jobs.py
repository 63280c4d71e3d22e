from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from arreglame_api.db.base import Base, TimestampMixin, UUIDPkMixin
from arreglame_api.db.models.enums import ServiceRequestStatus, TicketPriority, TicketStatus


class ServiceRequest(UUIDPkMixin, TimestampMixin, Base):
    """A booked job: a client's request for a service, optionally fulfilled by a worker."""
    __tablename__ = "service_requests"

    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    worker_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("service_categories.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ServiceRequestStatus.OPEN.value, index=True
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    idempotency_key: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, unique=True)

    description: Mapped[str] = mapped_column(Text, nullable=False)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    square_meters: Mapped[float] = mapped_column(Float, nullable=False)

    # Estimation and pricing
    pricing_engine: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    difficulty_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    estimated_hours: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    estimation: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="ARS")
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    worker_net: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    platform_commission: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    taxes: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    # Added on top of the estimated total by the client while nobody accepts
    extra_increment: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    increment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Execution
    start_pin: Mapped[Optional[str]] = mapped_column(String(4), nullable=True)
    scheduled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    warranty_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    payout_released_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancellation_fee: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    extra_time_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    extra_time_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    extra_time_status: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)

    # Evidence (base64 data URLs)
    image_before: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_after: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    evidence_images: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    audit_feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    audit_confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)


class Review(UUIDPkMixin, TimestampMixin, Base):
    """Rating left by a participant after a completed job."""
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("job_id", "author_id", name="uq_reviews_job_author"),
    )

    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("service_requests.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    target_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class SupportTicket(UUIDPkMixin, TimestampMixin, Base):
    """Post-sale support case attached to a job."""
    __tablename__ = "support_tickets"

    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("service_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    reporter_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default=TicketPriority.MEDIUM.value)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=TicketStatus.OPEN.value)
    subject: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)


class ChatMessage(UUIDPkMixin, TimestampMixin, Base):
    """Message exchanged between the client and the worker of a job."""
    __tablename__ = "chat_messages"

    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("service_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
