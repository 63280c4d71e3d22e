from __future__ import annotations

from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy import func, select, update

from arreglame_api.db.models import ChatMessage, Review, ServiceRequest, SupportTicket
from arreglame_api.db.models.enums import ServiceRequestStatus, TicketStatus
from .base import BaseRepository


class JobRepository(BaseRepository):
    """Repository for service requests and their reviews, support tickets and chat."""

    # Service requests
    async def get(self, job_id: UUID) -> Optional[ServiceRequest]:
        stmt = select(ServiceRequest).where(ServiceRequest.id == job_id)
        return await self.scalar_one_or_none(stmt)

    async def get_by_idempotency_key(self, key: str) -> Optional[ServiceRequest]:
        stmt = select(ServiceRequest).where(ServiceRequest.idempotency_key == key)
        return await self.scalar_one_or_none(stmt)

    async def list_open(self, limit: int = 200) -> List[ServiceRequest]:
        stmt = (
            select(ServiceRequest)
            .where(ServiceRequest.status == ServiceRequestStatus.OPEN.value)
            .order_by(ServiceRequest.created_at.desc())
            .limit(limit)
        )
        result = await self.scalars(stmt)
        return list(result)

    async def list_for_client(self, client_id: UUID, limit: int = 100) -> List[ServiceRequest]:
        stmt = (
            select(ServiceRequest)
            .where(ServiceRequest.client_id == client_id)
            .order_by(ServiceRequest.created_at.desc())
            .limit(limit)
        )
        result = await self.scalars(stmt)
        return list(result)

    async def list_for_worker(self, worker_id: UUID, limit: int = 100) -> List[ServiceRequest]:
        stmt = (
            select(ServiceRequest)
            .where(ServiceRequest.worker_id == worker_id)
            .order_by(ServiceRequest.created_at.desc())
            .limit(limit)
        )
        result = await self.scalars(stmt)
        return list(result)

    async def transition(
        self,
        job_id: UUID,
        *,
        from_status: str,
        expected_version: int,
        values: dict[str, Any],
    ) -> bool:
        """
        Compare-and-set update guarded by status and version.

        Returns False when another writer changed the row first.
        """
        stmt = (
            update(ServiceRequest)
            .where(
                ServiceRequest.id == job_id,
                ServiceRequest.status == from_status,
                ServiceRequest.version == expected_version,
            )
            .values(version=ServiceRequest.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        result = await self.execute(stmt)
        return result.rowcount == 1

    async def refresh(self, job: ServiceRequest) -> ServiceRequest:
        await self.session.refresh(job)
        return job

    async def count_completed_for_worker(self, worker_id: UUID) -> int:
        stmt = select(func.count(ServiceRequest.id)).where(
            ServiceRequest.worker_id == worker_id,
            ServiceRequest.status == ServiceRequestStatus.COMPLETED.value,
        )
        result = await self.execute(stmt)
        return int(result.scalar_one())

    # Reviews
    async def get_review(self, job_id: UUID, author_id: UUID) -> Optional[Review]:
        stmt = select(Review).where(Review.job_id == job_id, Review.author_id == author_id)
        return await self.scalar_one_or_none(stmt)

    async def rating_stats(self, target_id: UUID) -> tuple[float, int]:
        """Return (average rating, review count) for a user; (0.0, 0) without reviews."""
        stmt = select(func.avg(Review.rating), func.count(Review.id)).where(Review.target_id == target_id)
        result = await self.execute(stmt)
        avg, count = result.one()
        return (round(float(avg), 2) if avg is not None else 0.0, int(count))

    # Tickets
    async def list_tickets(self, job_id: UUID) -> List[SupportTicket]:
        stmt = select(SupportTicket).where(SupportTicket.job_id == job_id).order_by(SupportTicket.created_at)
        result = await self.scalars(stmt)
        return list(result)

    async def get_active_ticket(self, job_id: UUID) -> Optional[SupportTicket]:
        """Newest ticket on the job that is not closed."""
        stmt = (
            select(SupportTicket)
            .where(SupportTicket.job_id == job_id, SupportTicket.status != TicketStatus.CLOSED.value)
            .order_by(SupportTicket.created_at.desc())
            .limit(1)
        )
        return await self.scalar_one_or_none(stmt)

    # Chat
    async def list_messages(self, job_id: UUID, limit: int = 500) -> List[ChatMessage]:
        stmt = (
            select(ChatMessage)
            .where(ChatMessage.job_id == job_id)
            .order_by(ChatMessage.created_at, ChatMessage.id)
            .limit(limit)
        )
        result = await self.scalars(stmt)
        return list(result)
