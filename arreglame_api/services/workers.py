from __future__ import annotations

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from arreglame_api.core.errors import NotFoundError
from arreglame_api.db.models import User, WorkerProfile
from arreglame_api.db.models.enums import UserRole
from arreglame_api.repositories.jobs import JobRepository
from arreglame_api.repositories.users import UserRepository
from arreglame_api.services.base import BaseService


class WorkerService(BaseService):
    """Worker profiles, availability and reputation."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.users = UserRepository(session)
        self.jobs = JobRepository(session)

    async def _own_profile(self, user: User) -> WorkerProfile:
        profile = await self.users.get_worker_profile(user.id)
        if profile is None:
            raise NotFoundError("Perfil profesional no encontrado")
        return profile

    # PUBLIC_INTERFACE
    async def public_profile(self, user_id: UUID) -> dict:
        user = await self.users.get_user_by_id(user_id)
        profile = await self.users.get_worker_profile(user_id)
        if user is None or profile is None or UserRole.WORKER.value not in (user.roles or []):
            raise NotFoundError("Profesional no encontrado")
        average, count = await self.jobs.rating_stats(user_id)
        return {
            "user_id": user.id,
            "full_name": profile.display_name or user.full_name,
            "bio": profile.bio,
            "is_available": profile.is_available,
            "average_rating": average,
            "review_count": count,
            "completed_jobs": await self.jobs.count_completed_for_worker(user_id),
        }

    # PUBLIC_INTERFACE
    async def update_location(self, user: User, lat: float, lng: float) -> WorkerProfile:
        profile = await self._own_profile(user)
        await self.users.update_location(profile, lat, lng)
        await self.users.commit()
        return profile

    # PUBLIC_INTERFACE
    async def set_availability(self, user: User, is_available: bool) -> WorkerProfile:
        profile = await self._own_profile(user)
        await self.users.set_availability(profile, is_available)
        await self.users.commit()
        return profile
