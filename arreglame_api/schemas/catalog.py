from __future__ import annotations

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ServiceRead(BaseModel):
    """Catalog entry."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    slug: str
    name: str
    icon_name: Optional[str] = None
    description: Optional[str] = None
    subcategory: Optional[str] = None
    base_price: Decimal
    hourly_rate: Decimal
    estimated_hours: float


class ServiceEstimate(BaseModel):
    slug: str
    complexity_factor: float = Field(..., ge=1)
    estimated_price: Decimal
    currency: str
