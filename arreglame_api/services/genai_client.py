"""
Factory for the Google Gemini client shared by the pricing engine and photo audit.
"""
from __future__ import annotations

import base64
import logging
import re
from typing import Any, Optional

from google import genai
from google.genai import types

from arreglame_api.core.settings import AppSettings, get_app_settings

logger = logging.getLogger(__name__)

_DATA_URL_PREFIX = re.compile(r"^data:image/(png|jpeg|jpg|webp);base64,")


# PUBLIC_INTERFACE
def build_genai_client(settings: Optional[AppSettings] = None) -> Optional[Any]:
    """Return a genai.Client when GEMINI_API_KEY is configured, otherwise None."""
    settings = settings or get_app_settings()
    if not settings.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY not set; AI features will use fallbacks")
        return None
    return genai.Client(api_key=settings.GEMINI_API_KEY)


# PUBLIC_INTERFACE
def strip_data_url(image: str) -> str:
    """Remove a data:image/...;base64, prefix, leaving the raw base64 payload."""
    return _DATA_URL_PREFIX.sub("", image, count=1)


def image_part(image: str) -> types.Part:
    """Build an inline JPEG part from a base64 string or data URL."""
    raw = base64.b64decode(strip_data_url(image), validate=True)
    return types.Part.from_bytes(data=raw, mime_type="image/jpeg")
