"""
Service request (job) lifecycle.

OPEN -> ASSIGNED -> IN_PROGRESS -> COMPLETED, with CANCELLED reachable from
any state before completion. Every transition is a compare-and-set on
(status, version) so two workers cannot take the same job.
"""
from __future__ import annotations

import logging
import math
import secrets
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from arreglame_api.core.errors import BadUserInputError, ConflictError, ForbiddenError, NotFoundError
from arreglame_api.core.settings import AppSettings, get_app_settings
from arreglame_api.db.base import as_utc, utcnow
from arreglame_api.db.models import Review, ServiceRequest, SupportTicket, User
from arreglame_api.db.models.enums import (
    ActiveRole,
    ExtraTimeStatus,
    NotificationType,
    ServiceRequestStatus,
    TicketPriority,
    UserRole,
)
from arreglame_api.repositories.jobs import JobRepository
from arreglame_api.repositories.users import UserRepository
from arreglame_api.schemas.jobs import JobCreate, JobRead
from arreglame_api.services.audit import PhotoAuditService, rejected_result
from arreglame_api.services.base import BaseService
from arreglame_api.services.catalog import CatalogService
from arreglame_api.services.ledger import LedgerService
from arreglame_api.services.notifications import NotificationService
from arreglame_api.services.policies import (
    CancellationPolicy,
    CommissionBreakdown,
    CommissionPolicy,
    EstimationPolicy,
    Money,
    PriceIncrementPolicy,
)
from arreglame_api.services.pricing import PricingService

logger = logging.getLogger(__name__)

Status = ServiceRequestStatus

MISSING_BEFORE_IMAGE_FEEDBACK = "No hay foto del antes para comparar. Contactá a soporte."
EARTH_RADIUS_KM = 6371.0


# PUBLIC_INTERFACE
def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two coordinates in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


# PUBLIC_INTERFACE
def generate_start_pin() -> str:
    """Random 4-digit code the client gives the worker on arrival."""
    return str(secrets.randbelow(9000) + 1000)


# PUBLIC_INTERFACE
def job_view(job: ServiceRequest, viewer_id: UUID) -> JobRead:
    """Serialize a job for a viewer; the start PIN is only visible to the client."""
    data = JobRead.model_validate(job)
    if job.client_id != viewer_id:
        data.start_pin = None
    return data


def _invalid_transition(current: str, target: Status) -> BadUserInputError:
    return BadUserInputError(f"Invalid state transition from {current} to {target.value}")


class JobService(BaseService):
    def __init__(
        self,
        session: AsyncSession,
        *,
        pricing: Optional[PricingService] = None,
        auditor: Optional[PhotoAuditService] = None,
        notifications: Optional[NotificationService] = None,
        settings: Optional[AppSettings] = None,
    ) -> None:
        super().__init__(session)
        self.settings = settings or get_app_settings()
        self.jobs = JobRepository(session)
        self.users = UserRepository(session)
        self.catalog = CatalogService(session)
        self.ledger = LedgerService(session)
        self.pricing = pricing or PricingService()
        self.auditor = auditor or PhotoAuditService(client=None, model=self.settings.GEMINI_MODEL)
        self.notifications = notifications or NotificationService(session)
        self.commission = CommissionPolicy.from_settings(self.settings)
        self.cancellation = CancellationPolicy.from_settings(self.settings)
        self.estimation = EstimationPolicy(currency=self.settings.CURRENCY)
        self.increments = PriceIncrementPolicy.from_settings(self.settings)

    async def _commit(self) -> None:
        await self.jobs.commit()
        await self.notifications.publish_pending()

    async def _get(self, job_id: UUID) -> ServiceRequest:
        job = await self.jobs.get(job_id)
        if job is None:
            raise NotFoundError("Trabajo no encontrado")
        return job

    async def _transition(self, job: ServiceRequest, target: Status, **values) -> ServiceRequest:
        ok = await self.jobs.transition(
            job.id,
            from_status=job.status,
            expected_version=job.version,
            values={"status": target.value, **values},
        )
        if not ok:
            raise ConflictError("El trabajo fue modificado por otra operación. Actualizá e intentá de nuevo.")
        return await self.jobs.refresh(job)

    def _require_assigned_worker(self, job: ServiceRequest, user: User) -> None:
        if job.worker_id != user.id:
            raise ForbiddenError("Solo el profesional asignado puede realizar esta acción")

    def _require_participant(self, job: ServiceRequest, user: User) -> None:
        if user.id not in (job.client_id, job.worker_id):
            raise ForbiddenError("No participás en este trabajo")

    @staticmethod
    def _breakdown(job: ServiceRequest) -> CommissionBreakdown:
        currency = job.currency
        return CommissionBreakdown(
            Money.of(job.total_amount, currency),
            Money.of(job.worker_net, currency),
            Money.of(job.platform_commission, currency),
            Money.of(job.taxes, currency),
        )

    # Booking

    # PUBLIC_INTERFACE
    async def create_job(self, client: User, payload: JobCreate) -> ServiceRequest:
        """
        Price and store a new OPEN job, then notify available workers nearby.

        A repeated idempotency key returns the job created the first time.
        """
        if payload.idempotency_key:
            existing = await self._replay(client.id, payload.idempotency_key)
            if existing is not None:
                return existing

        category = await self.catalog.get_service(payload.category_slug)
        estimation, engine = await self.pricing.estimate_price(
            payload.image_before, payload.description, payload.square_meters
        )
        self.estimation.validate(estimation)
        total = self.estimation.base_price(estimation, payload.square_meters)
        breakdown = self.commission.calculate_from(total)

        job = ServiceRequest(
            client_id=client.id,
            category_id=category.id,
            status=Status.OPEN.value,
            version=1,
            idempotency_key=payload.idempotency_key,
            description=payload.description,
            address=payload.address,
            latitude=payload.lat,
            longitude=payload.lng,
            square_meters=payload.square_meters,
            pricing_engine=engine,
            difficulty_score=estimation.difficulty_score,
            estimated_hours=estimation.estimated_hours,
            estimation=estimation.as_dict(),
            currency=total.currency,
            total_amount=breakdown.total.amount,
            worker_net=breakdown.worker_net.amount,
            platform_commission=breakdown.platform_commission.amount,
            taxes=breakdown.taxes.amount,
            scheduled_at=payload.scheduled_at,
            image_before=payload.image_before,
            evidence_images=[],
        )
        try:
            await self.jobs.add(job)
        except IntegrityError:
            # a concurrent request with the same key committed first
            client_id = client.id
            await self.session.rollback()
            await self.session.refresh(client)
            existing = await self._replay(client_id, payload.idempotency_key) if payload.idempotency_key else None
            if existing is None:
                raise
            return existing
        notified = await self._notify_nearby_workers(job, "Nuevo Trabajo Disponible", category.name, exclude=client.id)
        await self._commit()
        logger.info("Job %s created via %s, total=%s, notified %d worker(s)", job.id, engine, total, notified)
        return job

    async def _replay(self, client_id: UUID, key: str) -> Optional[ServiceRequest]:
        existing = await self.jobs.get_by_idempotency_key(key)
        if existing is None:
            return None
        if existing.client_id != client_id:
            raise ConflictError("Clave de idempotencia en uso")
        logger.info("Idempotent replay for job %s", existing.id)
        return existing

    async def _notify_nearby_workers(self, job: ServiceRequest, title: str, detail: str, exclude: UUID) -> int:
        radius = self.settings.NEARBY_RADIUS_KM
        count = 0
        for profile in await self.users.list_available_workers():
            if profile.user_id == exclude:
                continue
            distance = haversine_km(job.latitude, job.longitude, profile.last_lat, profile.last_lng)
            if distance > radius:
                continue
            body = f"{detail} ({distance:.1f}km)"
            data = {"type": NotificationType.NEW_JOB.value, "jobId": str(job.id), "deeplink": f"/worker/jobs/{job.id}"}
            await self.notifications.notify(profile.user_id, title, body, NotificationType.NEW_JOB, data)
            await self.notifications.send_push_to_user(profile.user_id, title, body, data, store_in_app=False)
            count += 1
        return count

    # Queries

    # PUBLIC_INTERFACE
    async def nearby_jobs(self, lat: float, lng: float, radius_km: Optional[float] = None) -> List[Tuple[ServiceRequest, float]]:
        """OPEN jobs within radius, nearest first."""
        radius = radius_km if radius_km is not None else self.settings.NEARBY_RADIUS_KM
        found = []
        for job in await self.jobs.list_open():
            distance = haversine_km(lat, lng, job.latitude, job.longitude)
            if distance <= radius:
                found.append((job, round(distance, 2)))
        found.sort(key=lambda item: item[1])
        return found

    # PUBLIC_INTERFACE
    async def my_jobs(self, user: User, role: ActiveRole) -> List[ServiceRequest]:
        if ActiveRole(role) is ActiveRole.WORKER:
            return await self.jobs.list_for_worker(user.id)
        return await self.jobs.list_for_client(user.id)

    # PUBLIC_INTERFACE
    async def get_job(self, user: User, job_id: UUID) -> ServiceRequest:
        """Visible to its client, its worker, and any worker while the job is OPEN."""
        job = await self._get(job_id)
        if user.id in (job.client_id, job.worker_id):
            return job
        if job.status == Status.OPEN.value and UserRole.WORKER.value in (user.roles or []):
            return job
        raise NotFoundError("Trabajo no encontrado")

    # PUBLIC_INTERFACE
    async def job_history(self, user: User, job_id: UUID) -> Tuple[ServiceRequest, Optional[Review], Optional[SupportTicket]]:
        """Job detail for a participant with their own review and the open support ticket, if any."""
        job = await self._get(job_id)
        self._require_participant(job, user)
        review = await self.jobs.get_review(job.id, user.id)
        ticket = await self.jobs.get_active_ticket(job.id)
        return job, review, ticket

    # Negotiation

    # PUBLIC_INTERFACE
    async def increment_price(self, client: User, job_id: UUID) -> Tuple[ServiceRequest, Money]:
        """
        Raise the offer on the client's OPEN job and tell nearby workers again.

        Each increment is computed on the base price, so raising three times at
        10% adds 30% of the original estimate. Returns (job, amount added).
        """
        job = await self._get(job_id)
        if job.client_id != client.id:
            raise ForbiddenError("Solo el dueño del pedido puede incrementar el precio")
        if job.status != Status.OPEN.value:
            raise BadUserInputError("Solo se puede incrementar el precio de un pedido abierto")

        currency = job.currency
        current = Money.of(job.total_amount, currency)
        extra = Money.of(job.extra_increment or 0, currency)
        increment = self.increments.next_increment(current.subtract(extra), job.increment_count or 0)
        breakdown = self.commission.calculate_from(current.add(increment))

        job = await self._transition(
            job,
            Status.OPEN,
            total_amount=breakdown.total.amount,
            worker_net=breakdown.worker_net.amount,
            platform_commission=breakdown.platform_commission.amount,
            taxes=breakdown.taxes.amount,
            extra_increment=extra.add(increment).amount,
            increment_count=(job.increment_count or 0) + 1,
        )
        detail = f"Ahora paga {breakdown.total}"
        notified = await self._notify_nearby_workers(job, "Precio Aumentado", detail, exclude=client.id)
        await self._commit()
        logger.info(
            "Price incremented for job %s: +%s (total: %s), notified %d worker(s)",
            job.id, increment, breakdown.total, notified,
        )
        return job, increment

    # PUBLIC_INTERFACE
    async def request_extra_time(self, worker: User, job_id: UUID, minutes: int, reason: str) -> ServiceRequest:
        """Assigned worker asks the client for more time. The price does not change."""
        job = await self._get(job_id)
        self._require_assigned_worker(job, worker)
        if job.status not in (Status.ASSIGNED.value, Status.IN_PROGRESS.value):
            raise BadUserInputError("Solo se puede pedir tiempo extra en un trabajo en curso")
        if not 0 < minutes <= self.settings.EXTRA_TIME_MAX_MINUTES:
            raise BadUserInputError(f"Los minutos deben estar entre 1 y {self.settings.EXTRA_TIME_MAX_MINUTES}")
        if job.extra_time_status == ExtraTimeStatus.PENDING.value:
            raise ConflictError("Ya hay un pedido de tiempo extra pendiente")

        job = await self._transition(
            job,
            Status(job.status),
            extra_time_minutes=minutes,
            extra_time_reason=reason,
            extra_time_status=ExtraTimeStatus.PENDING.value,
        )
        await self.notifications.notify(
            job.client_id,
            "Pedido de tiempo extra",
            f"El profesional pide {minutes} minutos más. Motivo: {reason}",
            NotificationType.JOB_UPDATE,
            {"jobId": str(job.id), "extraTimeStatus": job.extra_time_status},
        )
        await self._commit()
        return job

    # PUBLIC_INTERFACE
    async def respond_extra_time(self, client: User, job_id: UUID, approved: bool) -> ServiceRequest:
        job = await self._get(job_id)
        if job.client_id != client.id:
            raise ForbiddenError("Solo el cliente puede responder el pedido de tiempo extra")
        if job.extra_time_status != ExtraTimeStatus.PENDING.value:
            raise BadUserInputError("No hay un pedido de tiempo extra pendiente")

        decision = ExtraTimeStatus.APPROVED if approved else ExtraTimeStatus.REJECTED
        job = await self._transition(job, Status(job.status), extra_time_status=decision.value)
        await self.notifications.notify(
            job.worker_id,
            "Tiempo extra aprobado" if approved else "Tiempo extra rechazado",
            f"El cliente respondió tu pedido de {job.extra_time_minutes} minutos.",
            NotificationType.JOB_UPDATE,
            {"jobId": str(job.id), "extraTimeStatus": job.extra_time_status},
        )
        await self._commit()
        logger.info("Extra time on job %s %s", job.id, decision.value)
        return job

    # Lifecycle

    # PUBLIC_INTERFACE
    async def accept_job(self, worker: User, job_id: UUID, expected_version: Optional[int] = None) -> ServiceRequest:
        job = await self._get(job_id)
        if job.status != Status.OPEN.value:
            raise _invalid_transition(job.status, Status.ASSIGNED)
        if job.client_id == worker.id:
            raise ForbiddenError("No podés aceptar tu propio pedido")
        if expected_version is not None and expected_version != job.version:
            raise ConflictError("El trabajo cambió desde que lo viste. Actualizá e intentá de nuevo.")

        try:
            job = await self._transition(
                job,
                Status.ASSIGNED,
                worker_id=worker.id,
                start_pin=generate_start_pin(),
                accepted_at=utcnow(),
            )
        except ConflictError:
            raise ConflictError("El trabajo ya fue tomado por otro profesional")

        await self.notifications.notify(
            job.client_id,
            "Tu pedido fue aceptado",
            f"Un profesional aceptó tu pedido. Código de inicio: {job.start_pin}",
            NotificationType.JOB_UPDATE,
            {"jobId": str(job.id), "status": job.status},
        )
        await self._commit()
        logger.info("Job %s accepted by worker %s", job.id, worker.id)
        return job

    # PUBLIC_INTERFACE
    async def start_job(self, worker: User, job_id: UUID, pin: str) -> ServiceRequest:
        job = await self._get(job_id)
        self._require_assigned_worker(job, worker)
        if job.status != Status.ASSIGNED.value:
            raise _invalid_transition(job.status, Status.IN_PROGRESS)
        if not secrets.compare_digest(str(pin), job.start_pin or ""):
            raise BadUserInputError("PIN incorrecto")

        job = await self._transition(job, Status.IN_PROGRESS, started_at=utcnow())
        await self.notifications.notify(
            job.client_id,
            "Trabajo iniciado",
            "El profesional comenzó el trabajo.",
            NotificationType.JOB_UPDATE,
            {"jobId": str(job.id), "status": job.status},
        )
        await self._commit()
        return job

    # PUBLIC_INTERFACE
    async def complete_job(
        self,
        worker: User,
        job_id: UUID,
        image_after: str,
        evidence_images: Optional[List[str]] = None,
    ) -> Tuple[dict, ServiceRequest]:
        """
        Audit the before/after photos and complete the job when approved.

        Returns (audit result, job). A rejected audit leaves the job IN_PROGRESS.
        """
        job = await self._get(job_id)
        self._require_assigned_worker(job, worker)
        if job.status != Status.IN_PROGRESS.value:
            raise _invalid_transition(job.status, Status.COMPLETED)

        evidence = list(evidence_images or [])
        if not job.image_before:
            result = rejected_result(MISSING_BEFORE_IMAGE_FEEDBACK)
        else:
            result = await self.auditor.audit_job_completion(job.image_before, image_after, evidence)

        if not result["approved"]:
            logger.info("Job %s completion rejected: %s", job.id, result["feedback"])
            return result, job

        now = utcnow()
        job = await self._transition(
            job,
            Status.COMPLETED,
            completed_at=now,
            warranty_expires_at=now + timedelta(hours=self.settings.WARRANTY_HOURS),
            image_after=image_after,
            evidence_images=evidence,
            audit_feedback=result["feedback"],
            audit_confidence=result["confidence"],
        )
        await self.notifications.notify(
            job.client_id,
            "Trabajo completado",
            f"El trabajo fue verificado. Tenés {self.settings.WARRANTY_HOURS}h de garantía para reportar problemas.",
            NotificationType.JOB_UPDATE,
            {"jobId": str(job.id), "status": job.status},
        )
        await self._commit()
        return result, job

    # PUBLIC_INTERFACE
    async def cancel_job(self, user: User, job_id: UUID, reason: str) -> Tuple[ServiceRequest, Money]:
        """
        Cancel the job. The party cancelling pays the fee the cancellation
        policy assigns for the job's state and schedule.
        """
        job = await self._get(job_id)
        self._require_participant(job, user)
        if job.status in (Status.COMPLETED.value, Status.CANCELLED.value):
            raise _invalid_transition(job.status, Status.CANCELLED)

        fee = self.cancellation.calculate_fee(
            Money.of(job.total_amount, job.currency), job.scheduled_at, job.status
        ).total
        previous_worker = job.worker_id
        job = await self._transition(
            job,
            Status.CANCELLED,
            cancelled_at=utcnow(),
            cancellation_reason=reason,
            cancellation_fee=fee.amount,
        )
        await self.ledger.record_cancellation_fee(user.id, job.id, fee)

        counterpart = previous_worker if user.id == job.client_id else job.client_id
        if counterpart is not None:
            await self.notifications.notify(
                counterpart,
                "Trabajo cancelado",
                f"El trabajo fue cancelado. Motivo: {reason}",
                NotificationType.JOB_UPDATE,
                {"jobId": str(job.id), "status": job.status},
            )
        await self._commit()
        logger.info("Job %s cancelled by %s, fee=%s", job.id, user.id, fee)
        return job, fee

    # PUBLIC_INTERFACE
    async def release_payout(self, user: User, job_id: UUID, now: Optional[datetime] = None) -> ServiceRequest:
        """Pay the worker once the warranty window has passed. Only once per job."""
        job = await self._get(job_id)
        if job.worker_id != user.id and UserRole.ADMIN.value not in (user.roles or []):
            raise ForbiddenError("Solo el profesional asignado puede liberar el pago")
        if job.status != Status.COMPLETED.value:
            raise BadUserInputError("El trabajo no está completado")
        if job.payout_released_at is not None:
            raise BadUserInputError("El pago ya fue liberado")
        now = now or utcnow()
        deadline = as_utc(job.warranty_expires_at)
        if deadline is None or now < deadline:
            raise BadUserInputError(f"El período de garantía vence el {deadline:%Y-%m-%d %H:%M} UTC")

        job = await self._transition(job, Status.COMPLETED, payout_released_at=now)
        await self.ledger.record_payout(job.worker_id, job.id, self._breakdown(job))
        await self.notifications.notify(
            job.worker_id,
            "Pago liberado",
            f"Se acreditaron {job.currency} {Decimal(job.worker_net):.2f} en tu billetera.",
            NotificationType.PAYMENT,
            {"jobId": str(job.id)},
        )
        await self._commit()
        return job

    # Post-sale

    # PUBLIC_INTERFACE
    async def submit_review(self, client: User, job_id: UUID, rating: int, comment: Optional[str]) -> Review:
        """Client rates the worker. Low ratings open a HIGH priority support ticket."""
        job = await self._get(job_id)
        if job.client_id != client.id:
            raise ForbiddenError("Solo el cliente puede calificar este trabajo")
        if job.status != Status.COMPLETED.value:
            raise BadUserInputError("Solo se pueden calificar trabajos completados")
        if not 1 <= rating <= 5:
            raise BadUserInputError("La calificación debe estar entre 1 y 5")
        if await self.jobs.get_review(job.id, client.id) is not None:
            raise ConflictError("Ya calificaste este trabajo")

        review = Review(job_id=job.id, author_id=client.id, target_id=job.worker_id, rating=rating, comment=comment)
        await self.jobs.add(review)

        if rating <= self.settings.LOW_RATING_TICKET_THRESHOLD:
            ticket = SupportTicket(
                job_id=job.id,
                reporter_id=client.id,
                category="LOW_RATING",
                priority=TicketPriority.HIGH.value,
                subject=f"Calificación baja ({rating}/5)",
                description=comment or "Calificación baja sin comentario",
            )
            await self.jobs.add(ticket)
            logger.warning("Low rating %d on job %s; ticket %s opened", rating, job.id, ticket.id)

        await self.notifications.notify(
            job.worker_id,
            "Nueva calificación",
            f"Recibiste {rating} estrella(s).",
            NotificationType.INFO,
            {"jobId": str(job.id), "rating": rating},
        )
        await self._commit()
        return review

    # PUBLIC_INTERFACE
    async def open_ticket(self, user: User, job_id: UUID, category: str, subject: str, description: str) -> SupportTicket:
        job = await self._get(job_id)
        self._require_participant(job, user)
        ticket = SupportTicket(
            job_id=job.id,
            reporter_id=user.id,
            category=category,
            priority=TicketPriority.MEDIUM.value,
            subject=subject,
            description=description,
        )
        await self.jobs.add(ticket)
        await self._commit()
        return ticket
