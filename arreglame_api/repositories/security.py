from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select

from arreglame_api.db.models import SecurityLog
from .base import BaseRepository


class SecurityLogRepository(BaseRepository):
    """Repository for blocked chat content."""

    async def count_since(self, user_id: UUID, since: datetime) -> int:
        stmt = select(func.count(SecurityLog.id)).where(
            SecurityLog.user_id == user_id,
            SecurityLog.created_at >= since,
        )
        result = await self.execute(stmt)
        return int(result.scalar_one())
