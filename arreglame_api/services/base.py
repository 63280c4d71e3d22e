from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession


class BaseService:
    """
    Base class for services. Holds a session for use across multiple repositories.

    Services keep business logic and own the unit of work: repositories flush,
    services commit.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
