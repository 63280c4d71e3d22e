"""
Account registration, login, token refresh and role switching.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from jose import JWTError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from arreglame_api.core.errors import ConflictError, ForbiddenError, UnauthenticatedError
from arreglame_api.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    verify_password,
)
from arreglame_api.db.models import User
from arreglame_api.db.models.enums import ActiveRole, UserRole
from arreglame_api.repositories.users import UserRepository
from arreglame_api.services.base import BaseService

logger = logging.getLogger(__name__)

ROLE_LABELS = {
    ActiveRole.CLIENT.value: "Cliente",
    ActiveRole.WORKER.value: "Profesional",
}


# PUBLIC_INTERFACE
def issue_tokens(user: User) -> Dict[str, str]:
    """Access token carrying held roles and active role, plus a refresh token."""
    return {
        "token_type": "bearer",
        "access_token": create_access_token(
            subject=str(user.id),
            email=user.email,
            roles=list(user.roles or []),
            active_role=user.active_role,
        ),
        "refresh_token": create_refresh_token(subject=str(user.id)),
    }


class AuthService(BaseService):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.users = UserRepository(session)

    # PUBLIC_INTERFACE
    async def register(self, *, email: str, password: str, full_name: Optional[str], role: ActiveRole) -> User:
        """Create an account holding a single role; workers also get a profile."""
        if await self.users.get_user_by_email(email):
            raise ConflictError("Este email ya está registrado")
        role = ActiveRole(role)
        try:
            user = await self.users.create_user(
                email=email,
                full_name=full_name,
                hashed_password=get_password_hash(password),
                roles=[role.value],
                active_role=role.value,
            )
            if role is ActiveRole.WORKER:
                await self.users.create_worker_profile(user)
            await self.users.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError("Este email ya está registrado")
        logger.info("Registered user %s as %s", user.id, role.value)
        return user

    # PUBLIC_INTERFACE
    async def login(self, *, email: str, password: str, role: Optional[ActiveRole] = None) -> User:
        """Check credentials and, when a role is requested, make it the active role."""
        user = await self.users.get_user_by_email(email)
        if user is None or not verify_password(password, user.hashed_password):
            raise UnauthenticatedError("Credenciales inválidas")
        if not user.is_active:
            raise UnauthenticatedError("Usuario inactivo")
        if role is not None:
            role = ActiveRole(role)
            if role.value not in (user.roles or []):
                raise UnauthenticatedError(f"Este usuario no tiene el rol de {role.value}")
            if user.active_role != role.value:
                await self.users.set_active_role(user, role.value)
                await self.users.commit()
        return user

    # PUBLIC_INTERFACE
    async def refresh(self, refresh_token: str) -> User:
        """Resolve the user behind a refresh token."""
        try:
            claims: Dict[str, Any] = decode_token(refresh_token)
        except JWTError:
            raise UnauthenticatedError("Invalid refresh token")
        if claims.get("type") != "refresh" or not claims.get("sub"):
            raise UnauthenticatedError("Invalid token type")
        try:
            user_id = UUID(str(claims["sub"]))
        except ValueError:
            raise UnauthenticatedError("Invalid refresh token")
        user = await self.users.get_user_by_id(user_id)
        if user is None or not user.is_active:
            raise UnauthenticatedError("User not found or inactive")
        return user

    # PUBLIC_INTERFACE
    async def switch_active_role(self, user: User, role: ActiveRole) -> User:
        """Change the mode the user operates in. The role must already be held."""
        role = ActiveRole(role)
        if role.value not in (user.roles or []):
            raise ForbiddenError(f"No tienes el rol de {ROLE_LABELS[role.value]}")
        await self.users.set_active_role(user, role.value)
        await self.users.commit()
        logger.info("User %s switched active role to %s", user.id, role.value)
        return user

    # PUBLIC_INTERFACE
    async def become_worker(self, user: User) -> User:
        """Add the WORKER role and a worker profile. Safe to call repeatedly."""
        await self.users.add_role(user, UserRole.WORKER.value)
        if await self.users.get_worker_profile(user.id) is None:
            await self.users.create_worker_profile(user)
        await self.users.commit()
        return user
