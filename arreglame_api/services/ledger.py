"""
Double-entry ledger and wallet queries.

Balances are derived from entries (credits minus debits) and never stored.
Every posting must balance; entries are append-only.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from arreglame_api.core.errors import BadUserInputError
from arreglame_api.core.settings import get_app_settings
from arreglame_api.db.models import LedgerEntry
from arreglame_api.repositories.ledger import LedgerRepository
from arreglame_api.services.base import BaseService
from arreglame_api.services.policies import CENT, CommissionBreakdown, Money

logger = logging.getLogger(__name__)

PLATFORM_ACCOUNT = "PLATFORM"
ESCROW_ACCOUNT = "ESCROW"


@dataclass(frozen=True)
class Posting:
    """One side of a ledger transaction."""

    account_id: str
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    description: Optional[str] = None


class LedgerService(BaseService):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = LedgerRepository(session)

    # PUBLIC_INTERFACE
    async def post(
        self,
        postings: Sequence[Posting],
        *,
        kind: str,
        job_id: Optional[UUID] = None,
        currency: str = "ARS",
    ) -> List[LedgerEntry]:
        """
        Record a balanced transaction; the caller commits.

        Raises BadUserInputError when debits and credits differ or an amount is negative.
        """
        debits = sum((Decimal(p.debit) for p in postings), Decimal("0")).quantize(CENT)
        credits = sum((Decimal(p.credit) for p in postings), Decimal("0")).quantize(CENT)
        if any(p.debit < 0 or p.credit < 0 for p in postings):
            raise BadUserInputError("Ledger amounts cannot be negative")
        if debits != credits:
            raise BadUserInputError(f"Ledger entries don't balance: debits={debits}, credits={credits}")

        transaction_id = uuid.uuid4()
        entries = [
            LedgerEntry(
                transaction_id=transaction_id,
                account_id=str(p.account_id),
                job_id=job_id,
                kind=kind,
                debit=Decimal(p.debit).quantize(CENT),
                credit=Decimal(p.credit).quantize(CENT),
                currency=currency,
                description=p.description,
            )
            for p in postings
        ]
        await self.repo.add_all(entries)
        logger.info("Ledger %s %s: %d entries, amount=%s", kind, transaction_id, len(entries), debits)
        return entries

    # PUBLIC_INTERFACE
    async def record_cancellation_fee(self, payer_id: UUID, job_id: UUID, fee: Money) -> List[LedgerEntry]:
        """Charge the cancelling party the fee in favour of the platform."""
        if fee.amount <= 0:
            return []
        return await self.post(
            [
                Posting(str(payer_id), debit=fee.amount, description="Cargo por cancelación"),
                Posting(PLATFORM_ACCOUNT, credit=fee.amount, description="Cargo por cancelación"),
            ],
            kind="CANCELLATION_FEE",
            job_id=job_id,
            currency=fee.currency,
        )

    # PUBLIC_INTERFACE
    async def record_payout(self, worker_id: UUID, job_id: UUID, breakdown: CommissionBreakdown) -> List[LedgerEntry]:
        """Move a job total out of escrow to the worker (net) and the platform (commission and taxes)."""
        postings = [
            Posting(ESCROW_ACCOUNT, debit=breakdown.total.amount, description="Liberación de pago"),
            Posting(str(worker_id), credit=breakdown.worker_net.amount, description="Pago por trabajo completado"),
            Posting(PLATFORM_ACCOUNT, credit=breakdown.platform_commission.amount, description="Comisión de plataforma"),
        ]
        if breakdown.taxes.amount > 0:
            postings.append(Posting(PLATFORM_ACCOUNT, credit=breakdown.taxes.amount, description="Impuestos"))
        return await self.post(postings, kind="PAYOUT", job_id=job_id, currency=breakdown.total.currency)

    # PUBLIC_INTERFACE
    async def balance(self, account_id: UUID | str) -> Decimal:
        """Credits minus debits for the account. Negative for debtor accounts (e.g. a client owing a fee)."""
        return await self.repo.balance(str(account_id))

    # PUBLIC_INTERFACE
    async def wallet(self, account_id: UUID | str) -> dict:
        amount = await self.repo.balance(str(account_id))
        return {"balance": amount, "currency": get_app_settings().CURRENCY}

    # PUBLIC_INTERFACE
    async def transactions(self, account_id: UUID | str, limit: int = 50) -> List[LedgerEntry]:
        return await self.repo.list_for_account(str(account_id), limit)
