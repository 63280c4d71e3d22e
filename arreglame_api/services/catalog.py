from __future__ import annotations

import math
from decimal import Decimal
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from arreglame_api.core.errors import BadUserInputError, NotFoundError
from arreglame_api.core.settings import get_app_settings
from arreglame_api.db.models import ServiceCategory
from arreglame_api.repositories.catalog import CatalogRepository
from arreglame_api.services.base import BaseService
from arreglame_api.services.policies import Money

MAX_COMPLEXITY_FACTOR = 10


class CatalogService(BaseService):
    """Read access to the service catalog."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = CatalogRepository(session)

    # PUBLIC_INTERFACE
    async def list_services(self) -> List[ServiceCategory]:
        return await self.repo.list_active()

    # PUBLIC_INTERFACE
    async def get_service(self, slug: str) -> ServiceCategory:
        """Active category by slug; NotFoundError otherwise."""
        category = await self.repo.get_by_slug(slug)
        if category is None or not category.active:
            raise NotFoundError(f"Servicio '{slug}' no encontrado")
        return category

    # PUBLIC_INTERFACE
    async def estimate(self, slug: str, complexity_factor: float = 1.0) -> dict:
        """(base price + hourly rate * estimated hours) * complexity factor."""
        if not math.isfinite(complexity_factor) or complexity_factor < 1:
            raise BadUserInputError("El factor de complejidad debe ser mayor o igual a 1")
        if complexity_factor > MAX_COMPLEXITY_FACTOR:
            raise BadUserInputError(f"El factor de complejidad no puede superar {MAX_COMPLEXITY_FACTOR}")
        category = await self.get_service(slug)
        base = Decimal(category.base_price) + Decimal(category.hourly_rate) * Decimal(str(category.estimated_hours))
        currency = get_app_settings().CURRENCY
        price = Money.of(base * Decimal(str(complexity_factor)), currency).amount
        return {
            "slug": category.slug,
            "complexity_factor": complexity_factor,
            "estimated_price": price,
            "currency": currency,
        }
