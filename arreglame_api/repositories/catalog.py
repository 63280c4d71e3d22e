from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select

from arreglame_api.db.models import ServiceCategory
from .base import BaseRepository


class CatalogRepository(BaseRepository):
    """Repository for the service catalog."""

    async def list_active(self) -> List[ServiceCategory]:
        stmt = select(ServiceCategory).where(ServiceCategory.active.is_(True)).order_by(ServiceCategory.name)
        result = await self.scalars(stmt)
        return list(result)

    async def get_by_slug(self, slug: str) -> Optional[ServiceCategory]:
        stmt = select(ServiceCategory).where(ServiceCategory.slug == slug)
        return await self.scalar_one_or_none(stmt)

    async def upsert(
        self,
        *,
        slug: str,
        name: str,
        icon_name: Optional[str],
        description: Optional[str],
        subcategory: Optional[str],
        base_price: Decimal,
        hourly_rate: Decimal,
        estimated_hours: float,
    ) -> ServiceCategory:
        """Create the category or refresh its attributes when the slug exists."""
        category = await self.get_by_slug(slug)
        if category is None:
            category = ServiceCategory(slug=slug)
            self.session.add(category)
        category.name = name
        category.icon_name = icon_name
        category.description = description
        category.subcategory = subcategory
        category.base_price = base_price
        category.hourly_rate = hourly_rate
        category.estimated_hours = estimated_hours
        category.active = True
        await self.flush()
        return category
