from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from arreglame_api.core.deps import get_current_user, get_session
from arreglame_api.db.models import User
from arreglame_api.schemas.auth import (
    AuthResponse,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenPair,
    UserRead,
)
from arreglame_api.schemas.common import ErrorResponses, MessageResponse
from arreglame_api.services.auth import AuthService, issue_tokens

router = APIRouter(prefix="/auth", tags=["Auth"], responses=ErrorResponses)


def _auth_response(user: User) -> AuthResponse:
    return AuthResponse(**issue_tokens(user), user=UserRead.model_validate(user))


# PUBLIC_INTERFACE
@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=201,
    summary="Register user",
    description="Create an account as CLIENT or WORKER and return tokens. Workers also get a profile.",
)
async def register_user(
    payload: RegisterRequest,
    session: AsyncSession = Depends(get_session),
) -> AuthResponse:
    user = await AuthService(session).register(
        email=payload.email, password=payload.password, full_name=payload.full_name, role=payload.role
    )
    return _auth_response(user)


# PUBLIC_INTERFACE
@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Login",
    description="Authenticate with email and password. An optional role selects the mode to enter as.",
)
async def login(
    payload: LoginRequest,
    session: AsyncSession = Depends(get_session),
) -> AuthResponse:
    user = await AuthService(session).login(email=payload.email, password=payload.password, role=payload.role)
    return _auth_response(user)


# PUBLIC_INTERFACE
@router.post(
    "/refresh",
    response_model=TokenPair,
    summary="Refresh access token",
    description="Issue a new token pair from a valid refresh token.",
)
async def refresh_token(
    payload: RefreshRequest,
    session: AsyncSession = Depends(get_session),
) -> TokenPair:
    user = await AuthService(session).refresh(payload.refresh_token)
    return TokenPair(**issue_tokens(user))


# PUBLIC_INTERFACE
@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Logout",
    description="Stateless logout. Clients should discard tokens. No server state maintained.",
)
async def logout() -> MessageResponse:
    """Acknowledge logout in stateless JWT systems."""
    return MessageResponse(message="Sesión cerrada")


# PUBLIC_INTERFACE
@router.get(
    "/me",
    response_model=UserRead,
    summary="Read current user",
    description="Return the current authenticated user with held roles and active role.",
)
async def read_current_user(user: User = Depends(get_current_user)) -> UserRead:
    return UserRead.model_validate(user)
