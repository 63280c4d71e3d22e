"""
JobService against a real (SQLite) database: concurrency guard, payout
release, low-rating tickets, nearby fan-out, price increments, extra time
requests and job history.
"""
from datetime import timedelta
from decimal import Decimal

import pytest

from arreglame_api.core.errors import BadUserInputError, ConflictError, ForbiddenError
from arreglame_api.db.base import utcnow
from arreglame_api.db.models.enums import ActiveRole, ServiceRequestStatus, TicketPriority
from arreglame_api.repositories.jobs import JobRepository
from arreglame_api.repositories.notifications import NotificationRepository
from arreglame_api.repositories.users import UserRepository
from arreglame_api.schemas.jobs import JobCreate
from arreglame_api.services.audit import PhotoAuditService
from arreglame_api.services.auth import AuthService
from arreglame_api.services.jobs import MISSING_BEFORE_IMAGE_FEEDBACK, JobService, generate_start_pin, haversine_km
from arreglame_api.services.ledger import ESCROW_ACCOUNT, PLATFORM_ACCOUNT, LedgerService
from arreglame_api.services.pricing import PricingService
from conftest import AFTER_IMAGE, BEFORE_IMAGE

LAT, LNG = -34.6037, -58.3816


async def make_user(session, email, role=ActiveRole.CLIENT):
    return await AuthService(session).register(email=email, password="secret123", full_name=email, role=role)


async def make_available_worker(session, email, lat=LAT, lng=LNG):
    worker = await make_user(session, email, ActiveRole.WORKER)
    users = UserRepository(session)
    profile = await users.get_worker_profile(worker.id)
    await users.update_location(profile, lat, lng)
    await users.set_availability(profile, True)
    await users.commit()
    return worker


def job_service(session, genai) -> JobService:
    return JobService(session, auditor=PhotoAuditService(genai, model="test-model"))


def job_payload(**overrides) -> JobCreate:
    data = {
        "category_slug": "corte-pasto",
        "description": "Corte de pasto simple",
        "lat": LAT,
        "lng": LNG,
        "square_meters": 100,
        "image_before": BEFORE_IMAGE,
    }
    data.update(overrides)
    return JobCreate(**data)


async def completed_job(svc, client, worker):
    job = await svc.create_job(client, job_payload())
    job = await svc.accept_job(worker, job.id)
    job = await svc.start_job(worker, job.id, job.start_pin)
    result, job = await svc.complete_job(worker, job.id, AFTER_IMAGE)
    assert result["approved"] is True
    return job


def test_haversine():
    assert haversine_km(LAT, LNG, LAT, LNG) == 0
    # Buenos Aires to Córdoba is roughly 650 km
    assert 640 < haversine_km(LAT, LNG, -31.4201, -64.1888) < 660


def test_start_pin_is_four_digits():
    for _ in range(50):
        pin = generate_start_pin()
        assert len(pin) == 4 and pin.isdigit() and pin[0] != "0"


async def test_only_nearby_available_workers_are_notified(session, approving_genai):
    client = await make_user(session, "c@example.com")
    near = await make_available_worker(session, "near@example.com")
    far = await make_available_worker(session, "far@example.com", lat=-31.4201, lng=-64.1888)
    await make_user(session, "busy@example.com", ActiveRole.WORKER)  # no location, not available

    job = await job_service(session, approving_genai).create_job(client, job_payload())

    repo = NotificationRepository(session)
    near_notes = await repo.list_for_user(near.id)
    assert [n.type for n in near_notes] == ["NEW_JOB"]
    assert near_notes[0].data["jobId"] == str(job.id)
    assert await repo.list_for_user(far.id) == []


async def test_concurrent_accept_only_one_wins(session, session_maker, approving_genai):
    client = await make_user(session, "c@example.com")
    first = await make_user(session, "w1@example.com", ActiveRole.WORKER)
    second = await make_user(session, "w2@example.com", ActiveRole.WORKER)
    job = await job_service(session, approving_genai).create_job(client, job_payload())

    async with session_maker() as other_session:
        other = job_service(other_session, approving_genai)
        stale_second = await UserRepository(other_session).get_user_by_id(second.id)
        # hold the row loaded while it is still OPEN so the identity map keeps it
        stale = await other.get_job(stale_second, job.id)
        assert (stale.status, stale.version) == ("OPEN", 1)

        await job_service(session, approving_genai).accept_job(first, job.id)

        with pytest.raises(ConflictError, match="ya fue tomado"):
            await other.accept_job(stale_second, job.id)
        await other_session.rollback()

    fresh = await JobRepository(session).get(job.id)
    await session.refresh(fresh)
    assert fresh.worker_id == first.id
    assert fresh.version == 2


async def test_worker_cannot_accept_own_request(session, approving_genai):
    both = await make_user(session, "both@example.com")
    await AuthService(session).become_worker(both)
    svc = job_service(session, approving_genai)
    job = await svc.create_job(both, job_payload())
    with pytest.raises(ForbiddenError):
        await svc.accept_job(both, job.id)


async def test_only_assigned_worker_can_start(session, approving_genai):
    client = await make_user(session, "c@example.com")
    worker = await make_user(session, "w@example.com", ActiveRole.WORKER)
    intruder = await make_user(session, "x@example.com", ActiveRole.WORKER)
    svc = job_service(session, approving_genai)
    job = await svc.accept_job(worker, (await svc.create_job(client, job_payload())).id)
    with pytest.raises(ForbiddenError):
        await svc.start_job(intruder, job.id, job.start_pin)


async def test_complete_without_before_image_is_rejected(session, approving_genai):
    client = await make_user(session, "c@example.com")
    worker = await make_user(session, "w@example.com", ActiveRole.WORKER)
    svc = job_service(session, approving_genai)
    job = await svc.create_job(client, job_payload(image_before=None))
    job = await svc.accept_job(worker, job.id)
    job = await svc.start_job(worker, job.id, job.start_pin)

    result, job = await svc.complete_job(worker, job.id, AFTER_IMAGE)

    assert result == {"approved": False, "confidence": 0.0, "feedback": MISSING_BEFORE_IMAGE_FEEDBACK}
    assert job.status == ServiceRequestStatus.IN_PROGRESS.value
    assert approving_genai.models.calls == []


async def test_complete_from_wrong_state(session, approving_genai):
    client = await make_user(session, "c@example.com")
    worker = await make_user(session, "w@example.com", ActiveRole.WORKER)
    svc = job_service(session, approving_genai)
    job = await svc.accept_job(worker, (await svc.create_job(client, job_payload())).id)
    with pytest.raises(BadUserInputError, match="Invalid state transition from ASSIGNED to COMPLETED"):
        await svc.complete_job(worker, job.id, AFTER_IMAGE)


async def test_release_payout_after_warranty(session, approving_genai):
    client = await make_user(session, "c@example.com")
    worker = await make_user(session, "w@example.com", ActiveRole.WORKER)
    svc = job_service(session, approving_genai)
    job = await completed_job(svc, client, worker)

    with pytest.raises(BadUserInputError):
        await svc.release_payout(worker, job.id)
    with pytest.raises(ForbiddenError):
        await svc.release_payout(client, job.id, now=utcnow() + timedelta(hours=73))

    job = await svc.release_payout(worker, job.id, now=utcnow() + timedelta(hours=73))
    assert job.payout_released_at is not None

    ledger = LedgerService(session)
    assert await ledger.balance(worker.id) == Decimal("15750.00")
    assert await ledger.balance(PLATFORM_ACCOUNT) == Decimal("5250.00")
    assert await ledger.balance(ESCROW_ACCOUNT) == Decimal("-21000.00")

    with pytest.raises(BadUserInputError, match="ya fue liberado"):
        await svc.release_payout(worker, job.id, now=utcnow() + timedelta(hours=74))


async def test_low_rating_opens_high_priority_ticket(session, approving_genai):
    client = await make_user(session, "c@example.com")
    worker = await make_user(session, "w@example.com", ActiveRole.WORKER)
    svc = job_service(session, approving_genai)
    job = await completed_job(svc, client, worker)

    review = await svc.submit_review(client, job.id, 2, "Dejó todo sucio")
    assert review.target_id == worker.id

    tickets = await JobRepository(session).list_tickets(job.id)
    assert len(tickets) == 1
    assert tickets[0].priority == TicketPriority.HIGH.value
    assert tickets[0].category == "LOW_RATING"
    assert tickets[0].description == "Dejó todo sucio"

    average, count = await JobRepository(session).rating_stats(worker.id)
    assert (average, count) == (2.0, 1)


async def test_good_rating_opens_no_ticket(session, approving_genai):
    client = await make_user(session, "c@example.com")
    worker = await make_user(session, "w@example.com", ActiveRole.WORKER)
    svc = job_service(session, approving_genai)
    job = await completed_job(svc, client, worker)

    await svc.submit_review(client, job.id, 3, None)
    assert await JobRepository(session).list_tickets(job.id) == []


async def test_only_client_can_review(session, approving_genai):
    client = await make_user(session, "c@example.com")
    worker = await make_user(session, "w@example.com", ActiveRole.WORKER)
    svc = job_service(session, approving_genai)
    job = await completed_job(svc, client, worker)
    with pytest.raises(ForbiddenError):
        await svc.submit_review(worker, job.id, 5, None)


async def test_worker_cancelling_in_progress_pays_half(session, approving_genai):
    client = await make_user(session, "c@example.com")
    worker = await make_user(session, "w@example.com", ActiveRole.WORKER)
    svc = job_service(session, approving_genai)
    job = await svc.accept_job(worker, (await svc.create_job(client, job_payload())).id)
    job = await svc.start_job(worker, job.id, job.start_pin)

    job, fee = await svc.cancel_job(worker, job.id, "Me enfermé")

    assert fee.amount == Decimal("10500.00")
    assert job.cancellation_fee == Decimal("10500.00")
    assert await LedgerService(session).balance(worker.id) == Decimal("-10500.00")
    client_notes = await NotificationRepository(session).list_for_user(client.id)
    assert "Trabajo cancelado" in [n.title for n in client_notes]


async def test_transition_with_old_version_is_refused(session, approving_genai):
    client = await make_user(session, "c@example.com")
    worker = await make_user(session, "w@example.com", ActiveRole.WORKER)
    svc = job_service(session, approving_genai)
    job = await svc.accept_job(worker, (await svc.create_job(client, job_payload())).id)

    repo = JobRepository(session)
    ok = await repo.transition(
        job.id,
        from_status=ServiceRequestStatus.ASSIGNED.value,
        expected_version=1,
        values={"status": ServiceRequestStatus.IN_PROGRESS.value},
    )
    assert ok is False
    ok = await repo.transition(
        job.id,
        from_status=ServiceRequestStatus.ASSIGNED.value,
        expected_version=2,
        values={"status": ServiceRequestStatus.IN_PROGRESS.value},
    )
    assert ok is True


class InterleavedPricing:
    """Runs another request while this one is still being priced."""

    def __init__(self, meanwhile):
        self.inner = PricingService()
        self.meanwhile = meanwhile

    async def estimate_price(self, *args, **kwargs):
        if self.meanwhile is not None:
            meanwhile, self.meanwhile = self.meanwhile, None
            await meanwhile()
        return await self.inner.estimate_price(*args, **kwargs)


async def test_retry_while_first_request_is_priced_returns_first_job(session, session_maker, approving_genai):
    client = await make_user(session, "c@example.com")
    created = {}

    async with session_maker() as first_session:
        first_client = await UserRepository(first_session).get_user_by_id(client.id)

        async def first_request_commits():
            first = job_service(first_session, approving_genai)
            created["job"] = await first.create_job(first_client, job_payload(idempotency_key="retry-1"))

        retry = JobService(
            session,
            pricing=InterleavedPricing(first_request_commits),
            auditor=PhotoAuditService(approving_genai, model="test-model"),
        )
        job = await retry.create_job(client, job_payload(idempotency_key="retry-1"))

    assert job.id == created["job"].id
    assert client.email == "c@example.com"
    assert len(await JobRepository(session).list_for_client(client.id)) == 1


async def test_idempotency_key_race_with_another_client_conflicts(session, session_maker, approving_genai):
    owner = await make_user(session, "owner@example.com")
    other = await make_user(session, "other@example.com")

    async with session_maker() as owner_session:
        owner_in_session = await UserRepository(owner_session).get_user_by_id(owner.id)

        async def owner_commits():
            await job_service(owner_session, approving_genai).create_job(
                owner_in_session, job_payload(idempotency_key="shared-key")
            )

        svc = JobService(
            session,
            pricing=InterleavedPricing(owner_commits),
            auditor=PhotoAuditService(approving_genai, model="test-model"),
        )
        with pytest.raises(ConflictError, match="Clave de idempotencia en uso"):
            await svc.create_job(other, job_payload(idempotency_key="shared-key"))


async def test_price_increments_are_computed_on_the_base_price(session, approving_genai):
    client = await make_user(session, "c@example.com")
    svc = job_service(session, approving_genai)
    job = await svc.create_job(client, job_payload())
    assert job.total_amount == Decimal("21000.00")

    job, increment = await svc.increment_price(client, job.id)

    assert increment.amount == Decimal("2100")
    assert (job.total_amount, job.worker_net, job.platform_commission) == (
        Decimal("23100.00"),
        Decimal("17325.00"),
        Decimal("5775.00"),
    )
    assert (job.extra_increment, job.increment_count, job.version) == (Decimal("2100.00"), 1, 2)

    for _ in range(2):
        job, increment = await svc.increment_price(client, job.id)
    assert increment.amount == Decimal("2100")
    assert job.total_amount == Decimal("27300.00")
    assert job.increment_count == 3

    with pytest.raises(BadUserInputError, match="Límite de incrementos alcanzado"):
        await svc.increment_price(client, job.id)


async def test_price_increment_notifies_nearby_workers_again(session, approving_genai):
    client = await make_user(session, "c@example.com")
    worker = await make_available_worker(session, "near@example.com")
    svc = job_service(session, approving_genai)
    job = await svc.create_job(client, job_payload())

    await svc.increment_price(client, job.id)

    notes = await NotificationRepository(session).list_for_user(worker.id)
    assert sorted(n.title for n in notes) == ["Nuevo Trabajo Disponible", "Precio Aumentado"]
    assert all(n.data["jobId"] == str(job.id) for n in notes)


async def test_only_owner_can_increment_an_open_job(session, approving_genai):
    client = await make_user(session, "c@example.com")
    other = await make_user(session, "other@example.com")
    worker = await make_user(session, "w@example.com", ActiveRole.WORKER)
    svc = job_service(session, approving_genai)
    job = await svc.create_job(client, job_payload())

    with pytest.raises(ForbiddenError):
        await svc.increment_price(other, job.id)

    await svc.accept_job(worker, job.id)
    with pytest.raises(BadUserInputError, match="pedido abierto"):
        await svc.increment_price(client, job.id)


async def test_extra_time_request_and_approval_keep_the_price(session, approving_genai):
    client = await make_user(session, "c@example.com")
    worker = await make_user(session, "w@example.com", ActiveRole.WORKER)
    svc = job_service(session, approving_genai)
    job = await svc.create_job(client, job_payload())

    with pytest.raises(ForbiddenError):
        await svc.request_extra_time(worker, job.id, 30, "Más maleza de lo esperado")

    job = await svc.accept_job(worker, job.id)
    with pytest.raises(BadUserInputError):
        await svc.request_extra_time(worker, job.id, 0, "Nada")

    job = await svc.request_extra_time(worker, job.id, 30, "Más maleza de lo esperado")
    assert (job.status, job.extra_time_status, job.extra_time_minutes) == ("ASSIGNED", "PENDING", 30)
    with pytest.raises(ConflictError, match="pendiente"):
        await svc.request_extra_time(worker, job.id, 15, "Otra vez")

    with pytest.raises(ForbiddenError):
        await svc.respond_extra_time(worker, job.id, True)
    job = await svc.respond_extra_time(client, job.id, True)
    assert job.extra_time_status == "APPROVED"
    assert job.total_amount == Decimal("21000.00")

    with pytest.raises(BadUserInputError, match="No hay un pedido"):
        await svc.respond_extra_time(client, job.id, False)

    worker_notes = await NotificationRepository(session).list_for_user(worker.id)
    assert "Tiempo extra aprobado" in {n.title for n in worker_notes}


async def test_rejected_extra_time_can_be_asked_again(session, approving_genai):
    client = await make_user(session, "c@example.com")
    worker = await make_user(session, "w@example.com", ActiveRole.WORKER)
    svc = job_service(session, approving_genai)
    job = await svc.create_job(client, job_payload())
    job = await svc.accept_job(worker, job.id)
    job = await svc.start_job(worker, job.id, job.start_pin)

    await svc.request_extra_time(worker, job.id, 45, "Lluvia")
    job = await svc.respond_extra_time(client, job.id, False)
    assert (job.status, job.extra_time_status) == ("IN_PROGRESS", "REJECTED")

    job = await svc.request_extra_time(worker, job.id, 20, "Falta terminar bordes")
    assert (job.extra_time_status, job.extra_time_minutes) == ("PENDING", 20)


async def test_job_history_shows_own_review_and_open_ticket(session, approving_genai):
    client = await make_user(session, "c@example.com")
    worker = await make_user(session, "w@example.com", ActiveRole.WORKER)
    outsider = await make_user(session, "x@example.com")
    svc = job_service(session, approving_genai)
    job = await completed_job(svc, client, worker)
    await svc.submit_review(client, job.id, 1, "No vino a terminar")

    _, review, ticket = await svc.job_history(client, job.id)
    assert review.rating == 1
    assert (ticket.category, ticket.status) == ("LOW_RATING", "OPEN")

    _, review, ticket = await svc.job_history(worker, job.id)
    assert review is None
    assert ticket is not None

    with pytest.raises(ForbiddenError):
        await svc.job_history(outsider, job.id)
