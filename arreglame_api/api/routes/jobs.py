from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query

from arreglame_api.core.deps import (
    get_chat_service,
    get_current_user,
    get_job_service,
    require_active_role,
    require_roles,
)
from arreglame_api.core.settings import get_app_settings
from arreglame_api.db.models import User
from arreglame_api.db.models.enums import ActiveRole, DifficultyLevel, UserRole
from arreglame_api.schemas.common import ErrorResponses
from arreglame_api.schemas.jobs import (
    AcceptJobRequest,
    AuditResult,
    CancelJobRequest,
    CancelJobResponse,
    ChatMessageCreate,
    ChatMessageRead,
    CompleteJobRequest,
    CompleteJobResponse,
    ExtraTimeRequest,
    ExtraTimeResponse,
    JobCreate,
    JobHistory,
    JobRead,
    NearbyJob,
    PriceIncrementResponse,
    QuickQuote,
    ReviewCreate,
    ReviewRead,
    StartJobRequest,
    TicketCreate,
    TicketRead,
)
from arreglame_api.services.chat import ChatService
from arreglame_api.services.jobs import JobService, job_view
from arreglame_api.services.policies import DIFFICULTY_MULTIPLIERS, CommissionPolicy, quick_quote

router = APIRouter(prefix="/jobs", tags=["Jobs"], responses=ErrorResponses)


# PUBLIC_INTERFACE
@router.get(
    "/estimate",
    response_model=QuickQuote,
    summary="Quick quote",
    description="Flat estimate: 500 + m2 * 150 * difficulty multiplier, with the commission split.",
)
async def estimate_job(
    square_meters: float = Query(..., gt=0),
    difficulty: DifficultyLevel = Query(DifficultyLevel.MEDIUM),
) -> QuickQuote:
    settings = get_app_settings()
    total = quick_quote(square_meters, difficulty, settings.CURRENCY)
    breakdown = CommissionPolicy.from_settings(settings).calculate_from(total)
    return QuickQuote(
        square_meters=square_meters,
        difficulty=difficulty,
        multiplier=float(DIFFICULTY_MULTIPLIERS[difficulty]),
        **breakdown.as_dict(),
    )


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=JobRead,
    status_code=201,
    summary="Create job",
    description=(
        "Book a service. The price comes from the AI engine (rule-based fallback); available "
        "workers nearby are notified. Repeating an idempotency key returns the original job."
    ),
)
async def create_job(
    payload: JobCreate,
    user: User = Depends(require_active_role(ActiveRole.CLIENT)),
    svc: JobService = Depends(get_job_service),
) -> JobRead:
    job = await svc.create_job(user, payload)
    return job_view(job, user.id)


# PUBLIC_INTERFACE
@router.get(
    "/nearby",
    response_model=List[NearbyJob],
    summary="Nearby open jobs",
    description="OPEN jobs within the radius, nearest first.",
)
async def nearby_jobs(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: Optional[float] = Query(None, gt=0, le=200),
    user: User = Depends(require_roles(UserRole.WORKER.value)),
    svc: JobService = Depends(get_job_service),
) -> List[NearbyJob]:
    found = await svc.nearby_jobs(lat, lng, radius_km)
    return [NearbyJob(job=job_view(job, user.id), distance_km=distance) for job, distance in found]


# PUBLIC_INTERFACE
@router.get("/mine", response_model=List[JobRead], summary="My jobs")
async def my_jobs(
    role: Optional[ActiveRole] = Query(None, description="Defaults to the active role"),
    user: User = Depends(get_current_user),
    svc: JobService = Depends(get_job_service),
) -> List[JobRead]:
    jobs = await svc.my_jobs(user, role or ActiveRole(user.active_role))
    return [job_view(job, user.id) for job in jobs]


# PUBLIC_INTERFACE
@router.get("/{job_id}", response_model=JobRead, summary="Get job")
async def get_job(
    job_id: UUID = Path(..., description="Job ID"),
    user: User = Depends(get_current_user),
    svc: JobService = Depends(get_job_service),
) -> JobRead:
    return job_view(await svc.get_job(user, job_id), user.id)


# PUBLIC_INTERFACE
@router.post(
    "/{job_id}/accept",
    response_model=JobRead,
    summary="Accept job",
    description="OPEN -> ASSIGNED. Fails with a conflict when another worker took it first.",
)
async def accept_job(
    payload: Optional[AcceptJobRequest] = None,
    job_id: UUID = Path(..., description="Job ID"),
    user: User = Depends(require_active_role(ActiveRole.WORKER)),
    svc: JobService = Depends(get_job_service),
) -> JobRead:
    return job_view(await svc.accept_job(user, job_id, payload.expected_version if payload else None), user.id)


# PUBLIC_INTERFACE
@router.post("/{job_id}/start", response_model=JobRead, summary="Start job with the client's PIN")
async def start_job(
    payload: StartJobRequest,
    job_id: UUID = Path(..., description="Job ID"),
    user: User = Depends(require_active_role(ActiveRole.WORKER)),
    svc: JobService = Depends(get_job_service),
) -> JobRead:
    return job_view(await svc.start_job(user, job_id, payload.pin), user.id)


# PUBLIC_INTERFACE
@router.post(
    "/{job_id}/complete",
    response_model=CompleteJobResponse,
    summary="Complete job",
    description="Runs the AI photo audit. Approved jobs become COMPLETED; rejected ones stay IN_PROGRESS.",
)
async def complete_job(
    payload: CompleteJobRequest,
    job_id: UUID = Path(..., description="Job ID"),
    user: User = Depends(require_active_role(ActiveRole.WORKER)),
    svc: JobService = Depends(get_job_service),
) -> CompleteJobResponse:
    result, job = await svc.complete_job(user, job_id, payload.image_after, payload.evidence_images)
    return CompleteJobResponse(audit=AuditResult(**result), job=job_view(job, user.id))


# PUBLIC_INTERFACE
@router.post("/{job_id}/cancel", response_model=CancelJobResponse, summary="Cancel job")
async def cancel_job(
    payload: CancelJobRequest,
    job_id: UUID = Path(..., description="Job ID"),
    user: User = Depends(get_current_user),
    svc: JobService = Depends(get_job_service),
) -> CancelJobResponse:
    job, fee = await svc.cancel_job(user, job_id, payload.reason)
    return CancelJobResponse(
        job=job_view(job, user.id),
        fee=fee.amount,
        refund=job.total_amount - fee.amount,
        currency=fee.currency,
    )


# PUBLIC_INTERFACE
@router.post(
    "/{job_id}/release-payout",
    response_model=JobRead,
    summary="Release payout",
    description="Credit the worker once the warranty window has passed. Only once per job.",
)
async def release_payout(
    job_id: UUID = Path(..., description="Job ID"),
    user: User = Depends(get_current_user),
    svc: JobService = Depends(get_job_service),
) -> JobRead:
    return job_view(await svc.release_payout(user, job_id), user.id)


# PUBLIC_INTERFACE
@router.post(
    "/{job_id}/review",
    response_model=ReviewRead,
    status_code=201,
    summary="Review worker",
    description="Client rates a completed job once. Ratings of 2 or less open a support ticket.",
)
async def review_job(
    payload: ReviewCreate,
    job_id: UUID = Path(..., description="Job ID"),
    user: User = Depends(get_current_user),
    svc: JobService = Depends(get_job_service),
) -> ReviewRead:
    review = await svc.submit_review(user, job_id, payload.rating, payload.comment)
    return ReviewRead.model_validate(review)


# PUBLIC_INTERFACE
@router.post("/{job_id}/tickets", response_model=TicketRead, status_code=201, summary="Open support ticket")
async def open_ticket(
    payload: TicketCreate,
    job_id: UUID = Path(..., description="Job ID"),
    user: User = Depends(get_current_user),
    svc: JobService = Depends(get_job_service),
) -> TicketRead:
    ticket = await svc.open_ticket(user, job_id, payload.category, payload.subject, payload.description)
    return TicketRead.model_validate(ticket)


# PUBLIC_INTERFACE
@router.get(
    "/{job_id}/history",
    response_model=JobHistory,
    summary="Job history",
    description="Job detail for a participant, with their own review and the open support ticket.",
)
async def job_history(
    job_id: UUID = Path(..., description="Job ID"),
    user: User = Depends(get_current_user),
    svc: JobService = Depends(get_job_service),
) -> JobHistory:
    job, review, ticket = await svc.job_history(user, job_id)
    return JobHistory(
        job=job_view(job, user.id),
        my_review=ReviewRead.model_validate(review) if review else None,
        active_ticket=TicketRead.model_validate(ticket) if ticket else None,
    )


# PUBLIC_INTERFACE
@router.post(
    "/{job_id}/increment-price",
    response_model=PriceIncrementResponse,
    summary="Increment price",
    description="Raise the offer on an OPEN job by a share of its base price. Nearby workers are notified again.",
)
async def increment_price(
    job_id: UUID = Path(..., description="Job ID"),
    user: User = Depends(get_current_user),
    svc: JobService = Depends(get_job_service),
) -> PriceIncrementResponse:
    job, increment = await svc.increment_price(user, job_id)
    limit = svc.increments.max_increments
    return PriceIncrementResponse(
        job=job_view(job, user.id),
        increment=increment.amount,
        increment_count=job.increment_count,
        max_increment_count=limit,
        can_increment_again=job.increment_count < limit,
    )


# PUBLIC_INTERFACE
@router.post("/{job_id}/extra-time", response_model=JobRead, summary="Request extra time")
async def request_extra_time(
    payload: ExtraTimeRequest,
    job_id: UUID = Path(..., description="Job ID"),
    user: User = Depends(require_active_role(ActiveRole.WORKER)),
    svc: JobService = Depends(get_job_service),
) -> JobRead:
    return job_view(await svc.request_extra_time(user, job_id, payload.minutes, payload.reason), user.id)


# PUBLIC_INTERFACE
@router.post(
    "/{job_id}/extra-time/respond",
    response_model=JobRead,
    summary="Respond to extra time",
    description="Client approves or rejects the pending request. The price does not change.",
)
async def respond_extra_time(
    payload: ExtraTimeResponse,
    job_id: UUID = Path(..., description="Job ID"),
    user: User = Depends(get_current_user),
    svc: JobService = Depends(get_job_service),
) -> JobRead:
    return job_view(await svc.respond_extra_time(user, job_id, payload.approved), user.id)


# PUBLIC_INTERFACE
@router.get("/{job_id}/messages", response_model=List[ChatMessageRead], summary="Chat messages")
async def list_messages(
    job_id: UUID = Path(..., description="Job ID"),
    user: User = Depends(get_current_user),
    chat: ChatService = Depends(get_chat_service),
) -> List[ChatMessageRead]:
    return [ChatMessageRead.model_validate(m) for m in await chat.list_messages(user, job_id)]


# PUBLIC_INTERFACE
@router.post(
    "/{job_id}/messages",
    response_model=ChatMessageRead,
    status_code=201,
    summary="Send chat message",
    description=(
        "Contact details and off-platform payment talk are blocked. Repeated violations "
        "within 24 hours suspend the account."
    ),
)
async def send_message(
    payload: ChatMessageCreate,
    job_id: UUID = Path(..., description="Job ID"),
    user: User = Depends(get_current_user),
    chat: ChatService = Depends(get_chat_service),
) -> ChatMessageRead:
    return ChatMessageRead.model_validate(await chat.send_message(user, job_id, payload.content))
