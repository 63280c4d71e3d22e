from __future__ import annotations

from fastapi import APIRouter, Depends

from arreglame_api.core.deps import get_audit_service, get_current_user
from arreglame_api.schemas.audit import AuditRequest
from arreglame_api.schemas.common import ErrorResponses
from arreglame_api.schemas.jobs import AuditResult
from arreglame_api.services.audit import PhotoAuditService

router = APIRouter(prefix="/audit", tags=["Audit"], responses=ErrorResponses)


# PUBLIC_INTERFACE
@router.post(
    "/job-completion",
    response_model=AuditResult,
    summary="Audit before/after photos",
    description="Compare before and after photos with the AI model. Failures return a rejection, never an error.",
    dependencies=[Depends(get_current_user)],
)
async def audit_job_completion(
    payload: AuditRequest,
    auditor: PhotoAuditService = Depends(get_audit_service),
) -> AuditResult:
    result = await auditor.audit_job_completion(payload.before_image, payload.after_image, payload.evidence_images)
    return AuditResult(**result)
