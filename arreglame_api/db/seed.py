"""
Database seeding for the service catalog.

Seeds (upsert by slug):
- corte-pasto
- electricidad-menor
- plomeria-express
- pintura-retoque

Usage:
  python -m arreglame_api.db.run_migrations upgrade head
  python -m arreglame_api.db.seed
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from arreglame_api.db.models import ServiceCategory
from arreglame_api.db.models.enums import ServiceSubcategory
from arreglame_api.db.session import get_session_maker
from arreglame_api.repositories.catalog import CatalogRepository

logger = logging.getLogger(__name__)

CATEGORIES = [
    {
        "slug": "corte-pasto",
        "name": "Corte de Pasto",
        "icon_name": "TreePine",
        "description": "Servicio profesional de corte y mantenimiento de césped",
        "subcategory": ServiceSubcategory.LAWN_MOWING.value,
        "base_price": Decimal("5000"),
        "hourly_rate": Decimal("0"),
        "estimated_hours": 1.5,
    },
    {
        "slug": "electricidad-menor",
        "name": "Electricidad Menor",
        "icon_name": "Zap",
        "description": "Reparaciones e instalaciones eléctricas menores",
        "subcategory": ServiceSubcategory.OUTLET_INSTALLATION.value,
        "base_price": Decimal("4000"),
        "hourly_rate": Decimal("0"),
        "estimated_hours": 1.0,
    },
    {
        "slug": "plomeria-express",
        "name": "Plomería Express",
        "icon_name": "Droplets",
        "description": "Soluciones rápidas para problemas de plomería",
        "subcategory": ServiceSubcategory.LEAK_REPAIR.value,
        "base_price": Decimal("4500"),
        "hourly_rate": Decimal("0"),
        "estimated_hours": 1.0,
    },
    {
        "slug": "pintura-retoque",
        "name": "Pintura Retoque",
        "icon_name": "Paintbrush",
        "description": "Retoques y trabajos de pintura para tu hogar",
        "subcategory": ServiceSubcategory.INTERIOR_PAINTING.value,
        "base_price": Decimal("6000"),
        "hourly_rate": Decimal("0"),
        "estimated_hours": 3.0,
    },
]


# PUBLIC_INTERFACE
async def seed_catalog(session: AsyncSession) -> List[ServiceCategory]:
    """Upsert the catalog categories and commit."""
    repo = CatalogRepository(session)
    seeded = []
    for data in CATEGORIES:
        category = await repo.upsert(**data)
        logger.info("Category: %s (%s)", category.name, category.slug)
        seeded.append(category)
    await repo.commit()
    return seeded


# PUBLIC_INTERFACE
async def seed_all() -> None:
    """Seed the database with reference data."""
    async with get_session_maker()() as session:
        await seed_catalog(session)


if __name__ == "__main__":
    from arreglame_api.core.logging import configure_logging

    configure_logging()
    asyncio.run(seed_all())
