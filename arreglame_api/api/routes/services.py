from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from arreglame_api.core.deps import get_session
from arreglame_api.schemas.catalog import ServiceEstimate, ServiceRead
from arreglame_api.schemas.common import ErrorResponses
from arreglame_api.services.catalog import CatalogService

router = APIRouter(prefix="/services", tags=["Services"], responses=ErrorResponses)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[ServiceRead],
    summary="List services",
    description="Active catalog entries ordered by name. No authentication required.",
)
async def list_services(session: AsyncSession = Depends(get_session)) -> List[ServiceRead]:
    items = await CatalogService(session).list_services()
    return [ServiceRead.model_validate(c) for c in items]


# PUBLIC_INTERFACE
@router.get(
    "/{slug}",
    response_model=ServiceRead,
    summary="Get service",
)
async def get_service(slug: str, session: AsyncSession = Depends(get_session)) -> ServiceRead:
    return ServiceRead.model_validate(await CatalogService(session).get_service(slug))


# PUBLIC_INTERFACE
@router.get(
    "/{slug}/estimate",
    response_model=ServiceEstimate,
    summary="Estimate service price",
    description="(base price + hourly rate * estimated hours) * complexity factor.",
)
async def estimate_service(
    slug: str,
    complexity_factor: float = Query(1.0, description="Multiplier >= 1 for harder jobs"),
    session: AsyncSession = Depends(get_session),
) -> ServiceEstimate:
    return ServiceEstimate(**await CatalogService(session).estimate(slug, complexity_factor))
