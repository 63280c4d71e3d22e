from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from arreglame_api.db.base import Base, TimestampMixin, UUIDPkMixin


class SecurityLog(UUIDPkMixin, TimestampMixin, Base):
    """Chat content that was blocked, kept for moderation and suspension counts."""
    __tablename__ = "security_logs"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    job_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("service_requests.id", ondelete="SET NULL"), nullable=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    action: Mapped[str] = mapped_column(String(32), nullable=False, default="BLOCKED")
    severity: Mapped[str] = mapped_column(String(16), nullable=False, default="HIGH")
