from __future__ import annotations

from decimal import Decimal
from typing import List

from sqlalchemy import func, select

from arreglame_api.db.models import LedgerEntry
from .base import BaseRepository


class LedgerRepository(BaseRepository):
    """Repository for append-only ledger entries."""

    async def balance(self, account_id: str) -> Decimal:
        stmt = select(
            func.coalesce(func.sum(LedgerEntry.credit), 0) - func.coalesce(func.sum(LedgerEntry.debit), 0)
        ).where(LedgerEntry.account_id == account_id)
        result = await self.execute(stmt)
        return Decimal(str(result.scalar_one() or 0)).quantize(Decimal("0.01"))

    async def list_for_account(self, account_id: str, limit: int = 50) -> List[LedgerEntry]:
        stmt = (
            select(LedgerEntry)
            .where(LedgerEntry.account_id == account_id)
            .order_by(LedgerEntry.created_at.desc())
            .limit(limit)
        )
        result = await self.scalars(stmt)
        return list(result)
