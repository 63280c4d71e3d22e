from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class AuditRequest(BaseModel):
    """Before/after photos as base64 strings or data URLs."""
    before_image: str
    after_image: str
    evidence_images: List[str] = Field(default_factory=list)
