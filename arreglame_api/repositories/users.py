from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select

from arreglame_api.db.base import utcnow
from arreglame_api.db.models import User, WorkerProfile
from .base import BaseRepository


class UserRepository(BaseRepository):
    """Repository for accounts, held roles and worker profiles."""

    # Users
    async def get_user_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(User.email == email.lower())
        return await self.scalar_one_or_none(stmt)

    async def get_user_by_id(self, user_id: UUID) -> Optional[User]:
        stmt = select(User).where(User.id == user_id)
        return await self.scalar_one_or_none(stmt)

    async def create_user(
        self,
        *,
        email: str,
        full_name: Optional[str],
        hashed_password: str,
        roles: List[str],
        active_role: str,
    ) -> User:
        user = User(
            email=email.lower(),
            full_name=full_name,
            hashed_password=hashed_password,
            roles=list(roles),
            active_role=active_role,
            is_active=True,
        )
        await self.add(user)
        return user

    async def set_active_role(self, user: User, active_role: str) -> User:
        user.active_role = active_role
        await self.flush()
        return user

    async def add_role(self, user: User, role: str) -> User:
        if role not in (user.roles or []):
            # reassign so the JSON column is marked dirty
            user.roles = [*(user.roles or []), role]
            await self.flush()
        return user

    # Worker profiles
    async def get_worker_profile(self, user_id: UUID) -> Optional[WorkerProfile]:
        stmt = select(WorkerProfile).where(WorkerProfile.user_id == user_id)
        return await self.scalar_one_or_none(stmt)

    async def create_worker_profile(self, user: User) -> WorkerProfile:
        profile = WorkerProfile(user_id=user.id, display_name=user.full_name, is_available=False)
        await self.add(profile)
        return profile

    async def update_location(self, profile: WorkerProfile, lat: float, lng: float) -> WorkerProfile:
        profile.last_lat = lat
        profile.last_lng = lng
        profile.location_updated_at = utcnow()
        await self.flush()
        return profile

    async def set_availability(self, profile: WorkerProfile, is_available: bool) -> WorkerProfile:
        profile.is_available = is_available
        await self.flush()
        return profile

    async def list_available_workers(self) -> List[WorkerProfile]:
        stmt = (
            select(WorkerProfile)
            .join(User, User.id == WorkerProfile.user_id)
            .where(
                WorkerProfile.is_available.is_(True),
                User.is_active.is_(True),
                WorkerProfile.last_lat.is_not(None),
                WorkerProfile.last_lng.is_not(None),
            )
        )
        result = await self.scalars(stmt)
        return list(result)
