from __future__ import annotations

import logging
from typing import AsyncGenerator
from uuid import UUID

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from arreglame_api.core.errors import ForbiddenError, UnauthenticatedError
from arreglame_api.core.logging import user_id_var
from arreglame_api.core.security import decode_token
from arreglame_api.db.models import User
from arreglame_api.db.models.enums import ActiveRole
from arreglame_api.db.session import get_async_session
from arreglame_api.repositories.users import UserRepository
from arreglame_api.services.audit import PhotoAuditService
from arreglame_api.services.chat import ChatService
from arreglame_api.services.jobs import JobService
from arreglame_api.services.notifications import NotificationService
from arreglame_api.services.pricing import PricingService

logger = logging.getLogger(__name__)

# OAuth2 bearer (used by docs); login endpoint path referenced here
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

MODE_LABELS = {
    ActiveRole.CLIENT.value: "Cliente",
    ActiveRole.WORKER.value: "Profesional",
}


# PUBLIC_INTERFACE
async def get_session(
    session_dep=Depends(get_async_session),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a request-scoped AsyncSession. Tests override this dependency."""
    yield session_dep


# PUBLIC_INTERFACE
async def resolve_user_from_token(session: AsyncSession, token: str | None) -> User:
    """
    Validate an access token and load its user fresh from the database.

    Roles and active role come from the database row, not from the token claims,
    so a role switch takes effect immediately.
    """
    if not token:
        raise UnauthenticatedError("Not authenticated")
    try:
        payload = decode_token(token)
    except JWTError:
        raise UnauthenticatedError("Invalid token")
    if payload.get("type") != "access" or not payload.get("sub"):
        raise UnauthenticatedError("Invalid token")
    try:
        user_id = UUID(str(payload["sub"]))
    except ValueError:
        raise UnauthenticatedError("Invalid token")

    user = await UserRepository(session).get_user_by_id(user_id)
    if user is None:
        raise UnauthenticatedError("User not found")
    if not user.is_active:
        raise UnauthenticatedError("Usuario inactivo")
    return user


# PUBLIC_INTERFACE
async def get_current_user(
    token: str | None = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_session),
) -> User:
    """Resolve the current user from the Authorization bearer token."""
    user = await resolve_user_from_token(session, token)
    user_id_var.set(str(user.id))
    return user


# PUBLIC_INTERFACE
def require_roles(*required: str):
    """
    Create a dependency that requires the current user to hold one of the given roles.
    """

    async def _dep(user: User = Depends(get_current_user)) -> User:
        if set(user.roles or []).isdisjoint(set(required)):
            raise ForbiddenError("No tienes permisos para realizar esta acción")
        return user

    return _dep


# PUBLIC_INTERFACE
def require_active_role(role: ActiveRole):
    """
    Create a dependency that requires the user to be operating in the given mode.
    """
    role = ActiveRole(role)

    async def _dep(user: User = Depends(get_current_user)) -> User:
        if user.active_role != role.value:
            raise ForbiddenError(f"Esta acción requiere estar en modo {MODE_LABELS[role.value]}")
        return user

    return _dep


# PUBLIC_INTERFACE
def get_pricing_service() -> PricingService:
    """AI pricing with rule-based fallback. Tests override this dependency."""
    return PricingService.from_settings()


# PUBLIC_INTERFACE
def get_audit_service() -> PhotoAuditService:
    """Photo audit backed by Gemini. Tests override this dependency."""
    return PhotoAuditService.from_settings()


# PUBLIC_INTERFACE
def get_notification_service(session: AsyncSession = Depends(get_session)) -> NotificationService:
    return NotificationService(session)


# PUBLIC_INTERFACE
def get_job_service(
    session: AsyncSession = Depends(get_session),
    pricing: PricingService = Depends(get_pricing_service),
    auditor: PhotoAuditService = Depends(get_audit_service),
    notifications: NotificationService = Depends(get_notification_service),
) -> JobService:
    return JobService(session, pricing=pricing, auditor=auditor, notifications=notifications)


# PUBLIC_INTERFACE
def get_chat_service(
    session: AsyncSession = Depends(get_session),
    notifications: NotificationService = Depends(get_notification_service),
) -> ChatService:
    return ChatService(session, notifications=notifications)
