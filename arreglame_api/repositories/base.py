from __future__ import annotations

from typing import Any, Iterable, Optional

from sqlalchemy import Executable
from sqlalchemy.ext.asyncio import AsyncSession


class BaseRepository:
    """
    Base class for repositories providing common helpers.

    Note:
      Writes are flushed, not committed. The calling service owns the
      transaction so a state change and its ledger entries land together.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def execute(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute a SQLAlchemy statement."""
        return await self.session.execute(statement, params or {})

    async def scalars(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute and return scalars."""
        result = await self.execute(statement, params)
        return result.scalars()

    async def scalar_one_or_none(self, statement: Executable, params: Optional[dict[str, Any]] = None):
        """Execute and return a single scalar or None."""
        result = await self.execute(statement, params)
        return result.scalar_one_or_none()

    async def flush(self) -> None:
        """Flush pending changes so generated values and constraints are applied."""
        await self.session.flush()

    async def commit(self) -> None:
        """Commit current transaction."""
        await self.session.commit()

    async def add_all(self, entities: Iterable[Any]) -> None:
        """Add multiple entities to session and flush."""
        self.session.add_all(list(entities))
        await self.flush()

    async def add(self, entity: Any) -> None:
        """Add a single entity to session and flush."""
        self.session.add(entity)
        await self.flush()
