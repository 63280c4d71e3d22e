"""
AI before/after photo audit for job completion.

The model compares the before photo with the after photo (plus optional
evidence) and returns {approved, confidence, feedback}. Any failure yields a
fixed rejection; there is no retry.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from arreglame_api.core.settings import AppSettings, get_app_settings
from arreglame_api.services.genai_client import build_genai_client, image_part

logger = logging.getLogger(__name__)

AUDIT_ERROR_FEEDBACK = "Error en la auditoría visual automática."

_AUDIT_PROMPT = """
SOS UN AUDITOR DE SERVICIOS PARA EL HOGAR Y JARDINERÍA EN ARGENTINA.
Compará la foto del ANTES con la/s foto/s del DESPUÉS.
REGLAS DE SEGURIDAD:
1. Si las imágenes son idénticas, RECHAZÁ (fraude).
2. Si el trabajo no está visiblemente terminado (por ejemplo el pasto no está más corto o prolijo), RECHAZÁ.
3. Ignorá cambios en la luz del sol, pero validá que los objetos fijos (paredes, árboles) coincidan para asegurar que es el mismo lugar.
4. Respondé en JSON con approved, confidence (0.0 a 1.0) y feedback en español rioplatense.
""".strip()

_AUDIT_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "approved": {"type": "BOOLEAN"},
        "confidence": {"type": "NUMBER", "description": "0.0 to 1.0"},
        "feedback": {"type": "STRING", "description": "Explicación en español rioplatense"},
    },
    "required": ["approved", "confidence", "feedback"],
}


def rejected_result(feedback: str = AUDIT_ERROR_FEEDBACK) -> dict:
    return {"approved": False, "confidence": 0.0, "feedback": feedback}


class PhotoAuditService:
    """Runs the completion audit against the configured Gemini model."""

    def __init__(self, client: Optional[Any] = None, model: Optional[str] = None) -> None:
        self.client = client
        self.model = model or get_app_settings().GEMINI_MODEL

    @classmethod
    def from_settings(cls, settings: Optional[AppSettings] = None) -> "PhotoAuditService":
        settings = settings or get_app_settings()
        return cls(build_genai_client(settings), settings.GEMINI_MODEL)

    # PUBLIC_INTERFACE
    async def audit_job_completion(
        self,
        before_image: str,
        after_image: str,
        evidence: Optional[List[str]] = None,
    ) -> dict:
        """
        Compare before/after photos and return {approved, confidence, feedback}.

        Returns the fixed rejection when the client is missing, the call fails
        or the response cannot be parsed.
        """
        try:
            if self.client is None:
                raise RuntimeError("Gemini API is not configured")
            parts = [_AUDIT_PROMPT, image_part(before_image), image_part(after_image)]
            parts.extend(image_part(img) for img in (evidence or []))

            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=parts,
                config={
                    "response_mime_type": "application/json",
                    "response_schema": _AUDIT_SCHEMA,
                },
            )
            data = json.loads(response.text)
            result = {
                "approved": bool(data["approved"]),
                "confidence": max(0.0, min(1.0, float(data.get("confidence", 0)))),
                "feedback": str(data.get("feedback") or ""),
            }
        except Exception:
            logger.exception("Photo audit failed")
            return rejected_result()

        logger.info("Photo audit approved=%s confidence=%.2f", result["approved"], result["confidence"])
        return result
