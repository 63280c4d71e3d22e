"""
Chat content moderation.

Messages that share contact details or try to move the payment off the
platform are blocked and logged. Repeated violations within a day suspend
the sender's account.
"""
from __future__ import annotations

import logging
import re
from datetime import timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from arreglame_api.core.errors import BadUserInputError, ForbiddenError
from arreglame_api.core.settings import AppSettings, get_app_settings
from arreglame_api.db.base import utcnow
from arreglame_api.db.models import SecurityLog, User
from arreglame_api.repositories.security import SecurityLogRepository
from arreglame_api.services.base import BaseService

logger = logging.getLogger(__name__)

BLOCK_PATTERNS = [
    # phone numbers: 11223344, 11 2233 4455, +54 9 11...
    re.compile(r"(?:\+?54[\s-]?)?(?:\d[\s-]?){8,}"),
    re.compile(r"\b(cel|tel|wsp|whatsapp|nume|llame|llamo|contacto).*\d{3,}", re.IGNORECASE),
    # paying outside the platform
    re.compile(r"\b(precio|cobro|pago|plata)\b.*\b(diferente|distinto|otro|arreglo|efectivo|mano|cash|afuera|fuera)\b", re.IGNORECASE),
    re.compile(r"\b(descuento|rebaja|barato)\b.*\b(si|por)\b.*\b(efectivo|mano)\b", re.IGNORECASE),
    re.compile(r"\b(cbu|alias|cvu|transferencia|mercado\s?pago|enviame)\b", re.IGNORECASE),
    # direct negotiation
    re.compile(r"\b(arreglamos|arreglemos)\b.*\b(nosotros|privado|directo)\b", re.IGNORECASE),
    re.compile(r"\bpasame\b.*\b(numero|número|id|insta|ig|face|perfil)\b", re.IGNORECASE),
]

BLOCKED_MESSAGE = (
    "MENSAJE BLOQUEADO. Por tu seguridad y la del sistema, no se permite compartir "
    "datos de contacto ni negociar pagos fuera de la plataforma."
)
SUSPENDED_MESSAGE = (
    "CUENTA SUSPENDIDA. Violaste nuestras políticas de seguridad repetidamente. "
    "Tu acceso fue revocado."
)
VIOLATION_WINDOW = timedelta(hours=24)


# PUBLIC_INTERFACE
def violates_policy(content: str) -> bool:
    """True when the text matches any blocked pattern."""
    return any(pattern.search(content) for pattern in BLOCK_PATTERNS)


class ContentSecurityService(BaseService):
    def __init__(self, session: AsyncSession, *, settings: Optional[AppSettings] = None) -> None:
        super().__init__(session)
        self.settings = settings or get_app_settings()
        self.logs = SecurityLogRepository(session)

    # PUBLIC_INTERFACE
    async def validate_message(self, user: User, job_id: Optional[UUID], content: str) -> None:
        """
        Let clean content through. Otherwise record the violation and raise
        BadUserInputError, or ForbiddenError once the user is suspended.

        The log entry and any suspension are committed before raising.
        """
        if not violates_policy(content):
            return

        await self.logs.add(
            SecurityLog(user_id=user.id, job_id=job_id, content=content, action="MESSAGE_BLOCKED", severity="HIGH")
        )
        violations = await self.logs.count_since(user.id, utcnow() - VIOLATION_WINDOW)
        if violations >= self.settings.MAX_CHAT_VIOLATIONS:
            user.is_active = False
            await self.logs.commit()
            logger.error("User %s suspended after %d chat violations", user.id, violations)
            raise ForbiddenError(SUSPENDED_MESSAGE)

        await self.logs.commit()
        logger.warning("Blocked chat message from %s on job %s (%d in 24h)", user.id, job_id, violations)
        raise BadUserInputError(BLOCKED_MESSAGE)
