from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from arreglame_api.core.deps import get_current_user, get_session
from arreglame_api.db.models import User
from arreglame_api.schemas.common import ErrorResponses
from arreglame_api.schemas.wallet import TransactionRead, WalletRead
from arreglame_api.services.ledger import LedgerService

router = APIRouter(prefix="/wallet", tags=["Wallet"], responses=ErrorResponses)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=WalletRead,
    summary="Wallet balance",
    description="Balance derived from the ledger (credits minus debits) for the current user.",
)
async def get_wallet(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> WalletRead:
    return WalletRead(**await LedgerService(session).wallet(user.id))


# PUBLIC_INTERFACE
@router.get("/transactions", response_model=List[TransactionRead], summary="Wallet transactions")
async def list_transactions(
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> List[TransactionRead]:
    entries = await LedgerService(session).transactions(user.id, limit)
    return [TransactionRead.model_validate(e) for e in entries]
