from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from arreglame_api.core.deps import get_current_user, get_session
from arreglame_api.db.models import User
from arreglame_api.schemas.auth import AuthResponse, SwitchRoleRequest, SwitchRoleResponse, UserRead
from arreglame_api.schemas.common import ErrorResponses
from arreglame_api.services.auth import AuthService, issue_tokens

router = APIRouter(prefix="/users/me", tags=["Users"], responses=ErrorResponses)


# PUBLIC_INTERFACE
@router.put(
    "/active-role",
    response_model=SwitchRoleResponse,
    summary="Switch active role",
    description="Switch between CLIENT and WORKER mode. The role must already be held.",
)
async def switch_active_role(
    payload: SwitchRoleRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> SwitchRoleResponse:
    user = await AuthService(session).switch_active_role(user, payload.active_role)
    tokens = issue_tokens(user)
    return SwitchRoleResponse(access_token=tokens["access_token"], user=UserRead.model_validate(user))


# PUBLIC_INTERFACE
@router.post(
    "/roles/worker",
    response_model=AuthResponse,
    summary="Become a worker",
    description="Add the WORKER role and a worker profile to the current account. Idempotent.",
)
async def become_worker(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> AuthResponse:
    user = await AuthService(session).become_worker(user)
    return AuthResponse(**issue_tokens(user), user=UserRead.model_validate(user))
