from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from arreglame_api.db.base import Base, TimestampMixin, UUIDPkMixin


class ServiceCategory(UUIDPkMixin, TimestampMixin, Base):
    """Catalog entry for a bookable service (e.g. corte de pasto)."""
    __tablename__ = "service_categories"

    slug: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    icon_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    subcategory: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    estimated_hours: Mapped[float] = mapped_column(Numeric(6, 2), nullable=False, default=1)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")
