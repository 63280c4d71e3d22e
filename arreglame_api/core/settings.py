from __future__ import annotations

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application-level settings for the marketplace API.

    This is separate from arreglame_api.db.config.Settings, which focuses on the database layer.
    """

    # FastAPI metadata
    APP_NAME: str = Field(default="Arreglame Ya API")
    APP_DESCRIPTION: str = Field(
        default=(
            "Backend API for the Arreglame Ya services marketplace. "
            "Clients request home and garden services, workers fulfil them."
        )
    )
    APP_VERSION: str = Field(default="1.0.0")

    # CORS
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"],
        description="Comma-separated list or JSON array of allowed origins. Default: *",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True)
    CORS_ALLOW_METHODS: List[str] = Field(default_factory=lambda: ["*"])
    CORS_ALLOW_HEADERS: List[str] = Field(default_factory=lambda: ["*"])

    # Startup behavior
    RUN_MIGRATIONS_ON_STARTUP: bool = Field(
        default=True,
        description="If true, run Alembic migrations (upgrade head) at app startup.",
    )
    AUTO_SEED: bool = Field(
        default=False,
        description="If true, seed the service catalog after migrations.",
    )

    # Auth
    JWT_SECRET_KEY: str = Field(default="CHANGE_THIS_SECRET_IN_PROD")
    JWT_ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60 * 24)
    REFRESH_TOKEN_EXPIRE_MINUTES: int = Field(default=60 * 24 * 30)

    # Generative AI (photo audit and price estimation)
    GEMINI_API_KEY: Optional[str] = Field(default=None, description="Google Gemini API key")
    GEMINI_MODEL: str = Field(default="gemini-2.5-flash")

    # Marketplace policies
    CURRENCY: str = Field(default="ARS")
    COMMISSION_RATE: float = Field(default=0.25, ge=0, lt=1)
    TAX_RATE: float = Field(default=0.0, ge=0, lt=1)
    CANCELLATION_WINDOW_HOURS: float = Field(default=24)
    CANCELLATION_PENALTY_RATE: float = Field(default=0.30, ge=0, le=1)
    IN_PROGRESS_PENALTY_RATE: float = Field(default=0.50, ge=0, le=1)
    WARRANTY_HOURS: int = Field(default=72, description="Hours before a completed job's payout is released")
    NEARBY_RADIUS_KM: float = Field(default=10.0)
    LOW_RATING_TICKET_THRESHOLD: int = Field(
        default=2, description="Reviews at or below this rating open a support ticket"
    )
    PRICE_INCREMENT_RATE: float = Field(default=0.10, gt=0, le=1, description="Share of the base price added per increment")
    MAX_PRICE_INCREMENTS: int = Field(default=3, ge=0)
    EXTRA_TIME_MAX_MINUTES: int = Field(default=240, gt=0)
    MAX_CHAT_VIOLATIONS: int = Field(
        default=3, description="Blocked chat messages within 24h before the account is suspended"
    )

    # Environment label
    ENVIRONMENT: str = Field(default="development", description="Environment label (development/test/production)")

    # Automatically load from .env at runtime.
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """
        Accept both JSON array format and comma-separated formats for CORS origins.
        """
        if v is None:
            return ["*"]
        if isinstance(v, str):
            parts = [p.strip() for p in v.split(",") if p.strip()]
            return parts or ["*"]
        if isinstance(v, list):
            return v or ["*"]
        return ["*"]


# PUBLIC_INTERFACE
def get_app_settings() -> AppSettings:
    """
    Return a new AppSettings instance populated from environment variables.

    Note:
      A new instance is built on every call so tests can patch the environment.
    """
    return AppSettings()
