from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import JSON, Boolean, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from arreglame_api.db.base import Base, TimestampMixin, UUIDPkMixin
from arreglame_api.db.models.enums import NotificationType


class Notification(UUIDPkMixin, TimestampMixin, Base):
    """In-app notification for a user."""
    __tablename__ = "notifications"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False, default=NotificationType.INFO.value)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)


class DeviceToken(UUIDPkMixin, TimestampMixin, Base):
    """Push notification token registered by a user's device/browser."""
    __tablename__ = "device_tokens"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token: Mapped[str] = mapped_column(String(512), nullable=False, unique=True)
    platform: Mapped[str] = mapped_column(String(32), nullable=False, default="web")
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")
