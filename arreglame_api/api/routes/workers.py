from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from arreglame_api.core.deps import get_current_user, get_session, require_active_role
from arreglame_api.db.models import User
from arreglame_api.db.models.enums import ActiveRole
from arreglame_api.schemas.common import ErrorResponses
from arreglame_api.schemas.workers import AvailabilityUpdate, LocationUpdate, WorkerPublicProfile, WorkerStatus
from arreglame_api.services.workers import WorkerService

router = APIRouter(prefix="/workers", tags=["Workers"], responses=ErrorResponses)


def _status(profile) -> WorkerStatus:
    return WorkerStatus(
        is_available=profile.is_available,
        last_lat=profile.last_lat,
        last_lng=profile.last_lng,
        location_updated_at=profile.location_updated_at,
    )


# PUBLIC_INTERFACE
@router.put(
    "/me/location",
    response_model=WorkerStatus,
    summary="Update location",
    description="Report the worker's current position, used to match nearby jobs.",
)
async def update_location(
    payload: LocationUpdate,
    user: User = Depends(require_active_role(ActiveRole.WORKER)),
    session: AsyncSession = Depends(get_session),
) -> WorkerStatus:
    profile = await WorkerService(session).update_location(user, payload.lat, payload.lng)
    return _status(profile)


# PUBLIC_INTERFACE
@router.put(
    "/me/status",
    response_model=WorkerStatus,
    summary="Set availability",
    description="Toggle whether the worker receives new job notifications.",
)
async def set_availability(
    payload: AvailabilityUpdate,
    user: User = Depends(require_active_role(ActiveRole.WORKER)),
    session: AsyncSession = Depends(get_session),
) -> WorkerStatus:
    profile = await WorkerService(session).set_availability(user, payload.is_available)
    return _status(profile)


# PUBLIC_INTERFACE
@router.get(
    "/{user_id}",
    response_model=WorkerPublicProfile,
    summary="Worker profile",
    description="Public profile with rating and completed jobs.",
)
async def get_worker_profile(
    user_id: UUID = Path(..., description="Worker user ID"),
    _user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> WorkerPublicProfile:
    return WorkerPublicProfile(**await WorkerService(session).public_profile(user_id))
