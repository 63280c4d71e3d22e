"""
Price estimation engines.

GeminiPricingEngine asks the AI model to analyse a photo and description;
RuleBasedPricingEngine derives the same estimation from keywords and area.
PricingService tries the AI engine first and falls back to the rules.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Protocol

from arreglame_api.core.settings import AppSettings, get_app_settings
from arreglame_api.services.genai_client import build_genai_client, image_part
from arreglame_api.services.policies import Estimation

logger = logging.getLogger(__name__)


class PricingEngine(Protocol):
    name: str

    async def estimate_price(self, image: Optional[str], description: str, square_meters: float) -> Estimation:
        ...

    def is_available(self) -> bool:
        ...


class RuleBasedPricingEngine:
    """Keyword and area based estimation. Always available."""

    name = "RuleBasedPricingEngine"

    RATE_PER_M2 = 150
    HOURLY_RATE = 2000
    HOURS_PER_M2 = 0.05

    EASY_KEYWORDS = ("simple", "pequeño", "fácil", "básico", "mantenimiento")
    HARD_KEYWORDS = (
        "grande",
        "difícil",
        "complejo",
        "maleza",
        "terreno irregular",
        "árboles",
        "obstáculos",
        "desnivel",
        "piedras",
    )
    OBSTACLE_LABELS = (
        ("maleza", "Maleza alta"),
        ("árboles", "Árboles que podar"),
        ("piedras", "Terreno con piedras"),
        ("desnivel", "Terreno irregular"),
        ("irregular", "Terreno irregular"),
        ("grande", "Área extensa"),
        ("obstáculos", "Múltiples obstáculos"),
    )
    NO_OBSTACLES = "Sin obstáculos significativos identificados"

    def is_available(self) -> bool:
        return True

    def difficulty_from_description(self, description: str) -> float:
        text = description.lower()
        score = 5.0
        for keyword in self.EASY_KEYWORDS:
            if keyword in text:
                score -= 1
        for keyword in self.HARD_KEYWORDS:
            if keyword in text:
                score += 1.5
        return max(1.0, min(10.0, score))

    def obstacles_from_description(self, description: str) -> List[str]:
        text = description.lower()
        obstacles: List[str] = []
        for keyword, label in self.OBSTACLE_LABELS:
            if keyword in text and label not in obstacles:
                obstacles.append(label)
        return obstacles or [self.NO_OBSTACLES]

    @staticmethod
    def _difficulty_label(score: float) -> str:
        if score < 4:
            return "baja"
        if score < 7:
            return "media"
        return "alta"

    async def estimate_price(self, image: Optional[str], description: str, square_meters: float) -> Estimation:
        logger.info("Using rule-based estimation for %sm2", square_meters)
        difficulty = self.difficulty_from_description(description)
        hours = max(1.0, square_meters * self.HOURS_PER_M2 * (1 + difficulty / 10))
        price = max(square_meters * self.RATE_PER_M2, hours * self.HOURLY_RATE)
        obstacles = self.obstacles_from_description(description)
        reasoning = (
            f"Estimación basada en reglas: Área de {square_meters:g}m² con dificultad "
            f"{self._difficulty_label(difficulty)}. Se estiman {hours:.1f} horas de trabajo. "
            f"Obstáculos detectados: {', '.join(obstacles)}."
        )
        return Estimation(
            estimated_m2=square_meters,
            difficulty_score=difficulty,
            estimated_hours=round(hours, 1),
            suggested_base_price=float(round(price)),
            obstacles=obstacles,
            reasoning=reasoning,
        )


_PRICING_PROMPT = """
Eres un experto en servicios de jardinería y mantenimiento del hogar.

Analiza la imagen y la descripción del cliente:
"{description}"

Área estimada: {square_meters} m²

Debes estimar:
1. difficultyScore (0-10): Nivel de dificultad del trabajo
2. estimatedHours: Horas estimadas necesarias
3. suggestedBasePrice: Precio base sugerido en ARS (pesos argentinos)
4. obstacles: Lista de obstáculos o complicaciones visibles
5. reasoning: Explicación breve de tu análisis

Considera el estado actual del área, la dificultad del terreno, los obstáculos
visibles, un tiempo realista y los precios del mercado argentino.
""".strip()

_PRICING_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "estimatedM2": {"type": "NUMBER"},
        "difficultyScore": {"type": "NUMBER"},
        "estimatedHours": {"type": "NUMBER"},
        "suggestedBasePrice": {"type": "NUMBER"},
        "obstacles": {"type": "ARRAY", "items": {"type": "STRING"}},
        "reasoning": {"type": "STRING"},
    },
    "required": ["difficultyScore", "estimatedHours", "suggestedBasePrice"],
}


class GeminiPricingEngine:
    """Estimation from the Gemini model using the job photo and description."""

    name = "GeminiPricingEngine"

    def __init__(self, client: Optional[Any] = None, model: Optional[str] = None) -> None:
        self.client = client
        self.model = model or get_app_settings().GEMINI_MODEL

    def is_available(self) -> bool:
        return self.client is not None

    async def estimate_price(self, image: Optional[str], description: str, square_meters: float) -> Estimation:
        if self.client is None:
            raise RuntimeError("Gemini API is not configured")
        if not image:
            raise ValueError("An image is required for AI estimation")

        prompt = _PRICING_PROMPT.format(description=description, square_meters=square_meters)
        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=[prompt, image_part(image)],
            config={
                "response_mime_type": "application/json",
                "response_schema": _PRICING_SCHEMA,
            },
        )
        data = json.loads(response.text or "{}")
        logger.info(
            "Gemini estimation: %sh, difficulty %s, price %s",
            data.get("estimatedHours"),
            data.get("difficultyScore"),
            data.get("suggestedBasePrice"),
        )
        return Estimation(
            estimated_m2=data.get("estimatedM2"),
            difficulty_score=float(data["difficultyScore"]),
            estimated_hours=float(data["estimatedHours"]),
            suggested_base_price=float(data["suggestedBasePrice"]),
            obstacles=list(data.get("obstacles") or []),
            reasoning=data.get("reasoning") or "",
        )


class PricingService:
    """Estimate with the AI engine when available, otherwise (or on failure) with the rules."""

    def __init__(self, ai_engine: Optional[PricingEngine] = None, rule_engine: Optional[PricingEngine] = None) -> None:
        self.ai_engine = ai_engine
        self.rule_engine = rule_engine or RuleBasedPricingEngine()

    @classmethod
    def from_settings(cls, settings: Optional[AppSettings] = None) -> "PricingService":
        settings = settings or get_app_settings()
        client = build_genai_client(settings)
        return cls(ai_engine=GeminiPricingEngine(client, settings.GEMINI_MODEL))

    # PUBLIC_INTERFACE
    async def estimate_price(self, image: Optional[str], description: str, square_meters: float) -> tuple[Estimation, str]:
        """Return (estimation, engine name)."""
        if self.ai_engine is not None and self.ai_engine.is_available():
            try:
                estimation = await self.ai_engine.estimate_price(image, description, square_meters)
                return estimation, self.ai_engine.name
            except Exception as exc:
                logger.warning("AI pricing failed: %s; falling back to rule-based", exc)
        else:
            logger.info("AI pricing unavailable; using rule-based pricing")
        estimation = await self.rule_engine.estimate_price(image, description, square_meters)
        return estimation, self.rule_engine.name

    # PUBLIC_INTERFACE
    def engine_status(self) -> dict:
        """Availability of each engine and the one that would be used now."""
        ai_available = self.ai_engine is not None and self.ai_engine.is_available()
        return {
            "ai": ai_available,
            "rule_based": self.rule_engine.is_available(),
            "active_engine": self.ai_engine.name if ai_available else self.rule_engine.name,
        }
