"""
In-app notifications, device registration and push delivery.

Created notifications are buffered and published to the user's realtime
topic by publish_pending() once the caller has committed.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from arreglame_api.core.errors import NotFoundError
from arreglame_api.db.models import DeviceToken, Notification
from arreglame_api.db.models.enums import NotificationType
from arreglame_api.repositories.notifications import NotificationRepository
from arreglame_api.schemas.notifications import NotificationRead
from arreglame_api.services.base import BaseService
from arreglame_api.services.realtime import BroadcastManager, broadcast_manager

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Notificación no encontrada"


class PushProvider(Protocol):
    async def send(self, tokens: List[str], title: str, body: str, data: Optional[Dict[str, Any]] = None) -> None:
        ...


class LoggingPushProvider:
    """Push provider that only logs; replace with a real gateway in deployments that have one."""

    async def send(self, tokens: List[str], title: str, body: str, data: Optional[Dict[str, Any]] = None) -> None:
        logger.info("Push to %d device(s): title=%r body=%r data=%s", len(tokens), title, body, data)


class NotificationService(BaseService):
    """Notification operations for the current user plus fan-out helpers for other services."""

    def __init__(
        self,
        session: AsyncSession,
        broadcaster: Optional[BroadcastManager] = None,
        push_provider: Optional[PushProvider] = None,
    ) -> None:
        super().__init__(session)
        self.repo = NotificationRepository(session)
        self.broadcaster = broadcaster or broadcast_manager
        self.push_provider = push_provider or LoggingPushProvider()
        self._pending: List[Notification] = []

    # Fan-out helpers (caller commits)

    # PUBLIC_INTERFACE
    async def notify(
        self,
        user_id: UUID,
        title: str,
        message: str,
        type: NotificationType | str = NotificationType.INFO,
        data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        """Store an in-app notification and queue it for realtime delivery."""
        notification = await self.repo.create(
            user_id=user_id,
            title=title,
            message=message,
            type=NotificationType(type).value,
            data=data,
        )
        self._pending.append(notification)
        return notification

    # PUBLIC_INTERFACE
    async def send_push_to_user(
        self,
        user_id: UUID,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
        store_in_app: bool = True,
    ) -> bool:
        """
        Deliver a push to the user's active devices.

        Returns False when the user has no devices or the provider fails;
        provider failures are logged, never raised. On success an in-app
        PUSH notification is stored unless store_in_app is False.
        """
        devices = await self.repo.list_active_devices(user_id)
        if not devices:
            logger.info("No active devices for user %s", user_id)
            return False
        try:
            await self.push_provider.send([d.token for d in devices], title, body, data)
        except Exception:
            logger.exception("Failed to send push notification to user %s", user_id)
            return False
        if store_in_app:
            await self.notify(user_id, title, body, NotificationType.PUSH, data)
        return True

    # PUBLIC_INTERFACE
    async def publish_pending(self) -> None:
        """Publish buffered notifications to their users' realtime topics."""
        pending, self._pending = self._pending, []
        for notification in pending:
            payload = NotificationRead.model_validate(notification).model_dump(mode="json")
            await self.broadcaster.publish_notification(notification.user_id, payload)

    # Current-user operations (commit)

    # PUBLIC_INTERFACE
    async def list_notifications(self, user_id: UUID, limit: int = 20) -> List[Notification]:
        return await self.repo.list_for_user(user_id, limit)

    # PUBLIC_INTERFACE
    async def unread_count(self, user_id: UUID) -> int:
        return await self.repo.count_unread(user_id)

    # PUBLIC_INTERFACE
    async def mark_as_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = await self.repo.get_for_user(notification_id, user_id)
        if notification is None:
            raise NotFoundError(NOT_FOUND_MESSAGE)
        notification.read = True
        await self.repo.commit()
        return notification

    # PUBLIC_INTERFACE
    async def mark_all_as_read(self, user_id: UUID) -> bool:
        updated = await self.repo.mark_all_read(user_id)
        await self.repo.commit()
        logger.info("Marked %d notification(s) as read", updated)
        return True

    # PUBLIC_INTERFACE
    async def delete_notification(self, notification_id: UUID, user_id: UUID) -> bool:
        deleted = await self.repo.delete_for_user(notification_id, user_id)
        if not deleted:
            raise NotFoundError(NOT_FOUND_MESSAGE)
        await self.repo.commit()
        return True

    # PUBLIC_INTERFACE
    async def register_device(self, user_id: UUID, token: str, platform: str = "web") -> bool:
        """Register a push token, re-assigning it when it already belongs to another user."""
        device = await self.repo.get_device(token)
        if device is None:
            await self.repo.add(DeviceToken(user_id=user_id, token=token, platform=platform, active=True))
        else:
            device.user_id = user_id
            device.platform = platform
            device.active = True
        await self.repo.commit()
        logger.info("Device token registered for user %s", user_id)
        return True
