from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, func, select, update

from arreglame_api.db.models import DeviceToken, Notification
from .base import BaseRepository


class NotificationRepository(BaseRepository):
    """Repository for in-app notifications and push device tokens."""

    async def create(
        self,
        *,
        user_id: UUID,
        title: str,
        message: str,
        type: str,
        data: Optional[dict] = None,
    ) -> Notification:
        notification = Notification(user_id=user_id, title=title, message=message, type=type, data=data, read=False)
        await self.add(notification)
        return notification

    async def list_for_user(self, user_id: UUID, limit: int = 20) -> List[Notification]:
        stmt = (
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
            .limit(limit)
        )
        result = await self.scalars(stmt)
        return list(result)

    async def count_unread(self, user_id: UUID) -> int:
        stmt = select(func.count(Notification.id)).where(
            Notification.user_id == user_id, Notification.read.is_(False)
        )
        result = await self.execute(stmt)
        return int(result.scalar_one())

    async def get_for_user(self, notification_id: UUID, user_id: UUID) -> Optional[Notification]:
        stmt = select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
        return await self.scalar_one_or_none(stmt)

    async def mark_all_read(self, user_id: UUID) -> int:
        stmt = (
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        result = await self.execute(stmt)
        return result.rowcount or 0

    async def delete_for_user(self, notification_id: UUID, user_id: UUID) -> bool:
        stmt = delete(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
        result = await self.execute(stmt)
        return (result.rowcount or 0) > 0

    # Device tokens
    async def get_device(self, token: str) -> Optional[DeviceToken]:
        stmt = select(DeviceToken).where(DeviceToken.token == token)
        return await self.scalar_one_or_none(stmt)

    async def list_active_devices(self, user_id: UUID) -> List[DeviceToken]:
        stmt = select(DeviceToken).where(DeviceToken.user_id == user_id, DeviceToken.active.is_(True))
        result = await self.scalars(stmt)
        return list(result)
