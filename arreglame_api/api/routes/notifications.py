from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query

from arreglame_api.core.deps import get_current_user, get_notification_service
from arreglame_api.db.models import User
from arreglame_api.schemas.common import ErrorResponses, SuccessResponse
from arreglame_api.schemas.notifications import DeviceRegistration, NotificationRead, UnreadCount
from arreglame_api.services.notifications import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"], responses=ErrorResponses)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[NotificationRead],
    summary="List notifications",
    description="Newest first.",
)
async def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    svc: NotificationService = Depends(get_notification_service),
) -> List[NotificationRead]:
    return [NotificationRead.model_validate(n) for n in await svc.list_notifications(user.id, limit)]


# PUBLIC_INTERFACE
@router.get("/unread-count", response_model=UnreadCount, summary="Unread count")
async def unread_count(
    user: User = Depends(get_current_user),
    svc: NotificationService = Depends(get_notification_service),
) -> UnreadCount:
    return UnreadCount(count=await svc.unread_count(user.id))


# PUBLIC_INTERFACE
@router.post("/read-all", response_model=SuccessResponse, summary="Mark all as read")
async def mark_all_as_read(
    user: User = Depends(get_current_user),
    svc: NotificationService = Depends(get_notification_service),
) -> SuccessResponse:
    return SuccessResponse(success=await svc.mark_all_as_read(user.id))


# PUBLIC_INTERFACE
@router.post(
    "/devices",
    response_model=SuccessResponse,
    summary="Register push device",
    description="Register a device token for push notifications; an existing token is re-assigned to the caller.",
)
async def register_device(
    payload: DeviceRegistration,
    user: User = Depends(get_current_user),
    svc: NotificationService = Depends(get_notification_service),
) -> SuccessResponse:
    return SuccessResponse(success=await svc.register_device(user.id, payload.token, payload.platform))


# PUBLIC_INTERFACE
@router.post("/{notification_id}/read", response_model=NotificationRead, summary="Mark as read")
async def mark_as_read(
    notification_id: UUID = Path(...),
    user: User = Depends(get_current_user),
    svc: NotificationService = Depends(get_notification_service),
) -> NotificationRead:
    return NotificationRead.model_validate(await svc.mark_as_read(notification_id, user.id))


# PUBLIC_INTERFACE
@router.delete("/{notification_id}", response_model=SuccessResponse, summary="Delete notification")
async def delete_notification(
    notification_id: UUID = Path(...),
    user: User = Depends(get_current_user),
    svc: NotificationService = Depends(get_notification_service),
) -> SuccessResponse:
    return SuccessResponse(success=await svc.delete_notification(notification_id, user.id))
