from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class WalletRead(BaseModel):
    balance: Decimal
    currency: str


class TransactionRead(BaseModel):
    """A ledger line on the user's account."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    transaction_id: UUID
    job_id: Optional[UUID] = None
    kind: str
    debit: Decimal
    credit: Decimal
    currency: str
    description: Optional[str] = None
    created_at: datetime
