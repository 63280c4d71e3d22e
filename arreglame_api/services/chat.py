from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from arreglame_api.core.errors import BadUserInputError, ForbiddenError, NotFoundError
from arreglame_api.db.models import ChatMessage, ServiceRequest, User
from arreglame_api.db.models.enums import NotificationType, ServiceRequestStatus
from arreglame_api.repositories.jobs import JobRepository
from arreglame_api.services.base import BaseService
from arreglame_api.services.content_security import ContentSecurityService
from arreglame_api.services.notifications import NotificationService

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 80


class ChatService(BaseService):
    """Per-job chat between the client and the assigned worker."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        notifications: Optional[NotificationService] = None,
        security: Optional[ContentSecurityService] = None,
    ) -> None:
        super().__init__(session)
        self.jobs = JobRepository(session)
        self.notifications = notifications or NotificationService(session)
        self.security = security or ContentSecurityService(session)

    async def _participant_job(self, user: User, job_id: UUID) -> ServiceRequest:
        job = await self.jobs.get(job_id)
        if job is None:
            raise NotFoundError("Trabajo no encontrado")
        if user.id not in (job.client_id, job.worker_id):
            raise ForbiddenError("No participás en este trabajo")
        return job

    # PUBLIC_INTERFACE
    async def send_message(self, user: User, job_id: UUID, content: str) -> ChatMessage:
        """Store a message once the job has a worker and the content passes moderation."""
        job = await self._participant_job(user, job_id)
        if job.worker_id is None or job.status == ServiceRequestStatus.CANCELLED.value:
            raise BadUserInputError("El chat está disponible solo para trabajos asignados")
        content = content.strip()
        if not content:
            raise BadUserInputError("El mensaje no puede estar vacío")

        await self.security.validate_message(user, job.id, content)

        message = ChatMessage(job_id=job.id, sender_id=user.id, content=content)
        await self.jobs.add(message)
        recipient = job.worker_id if user.id == job.client_id else job.client_id
        await self.notifications.notify(
            recipient,
            "Nuevo mensaje",
            content[:PREVIEW_LENGTH],
            NotificationType.CHAT_MESSAGE,
            {"jobId": str(job.id), "messageId": str(message.id)},
        )
        await self.jobs.commit()
        await self.notifications.publish_pending()
        return message

    # PUBLIC_INTERFACE
    async def list_messages(self, user: User, job_id: UUID) -> List[ChatMessage]:
        """Messages of the job, oldest first."""
        job = await self._participant_job(user, job_id)
        return await self.jobs.list_messages(job.id)
