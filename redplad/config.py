"""
ReDPlAD — Application Configuration

Loads all configuration from environment variables (and an optional .env file)
using Pydantic Settings.  A cached ``get_settings()`` helper is provided so that
FastAPI dependency-injection (and any other call-site) always receives the same
validated instance without re-parsing the environment on every request.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the ReDPlAD platform."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------ #
    # Database – Cloud SQL via Unix socket or private IP
    # ------------------------------------------------------------------ #
    DATABASE_URL: str
    DB_USER: str = "redplad_user"
    DB_PASSWORD: str = ""
    DB_NAME: str = "redplad"
    CLOUD_SQL_INSTANCE_CONNECTION: str = ""
    CLOUD_SQL_USE_UNIX_SOCKET: bool = True

    # ------------------------------------------------------------------ #
    # Redis – realtime chat relay
    # ------------------------------------------------------------------ #
    REDIS_URL: str

    # ------------------------------------------------------------------ #
    # Identity gateway (bearer tokens are issued elsewhere, verified here)
    # ------------------------------------------------------------------ #
    AUTH_JWT_SECRET: str
    AUTH_JWT_ALGORITHM: str = "HS256"
    AUTH_JWT_AUDIENCE: str = "authenticated"
    ADMIN_EMAILS: str = ""

    # ------------------------------------------------------------------ #
    # Compatibility scoring weights (must sum to 1.0)
    # ------------------------------------------------------------------ #
    CULTURAL_WEIGHT: float = 0.4
    PERSONALITY_WEIGHT: float = 0.3
    LOCATION_WEIGHT: float = 0.2
    AGE_WEIGHT: float = 0.1

    # ------------------------------------------------------------------ #
    # Matching / verification thresholds
    # ------------------------------------------------------------------ #
    MIN_COMPATIBILITY_SCORE: int = 50
    DISCOVERY_POOL_MULTIPLIER: int = 3
    QUIZ_PASS_PERCENTAGE: float = 60.0

    # ------------------------------------------------------------------ #
    # Google Cloud Platform (file storage)
    # ------------------------------------------------------------------ #
    GCP_PROJECT_ID: str = ""
    GCS_BUCKET_NAME: str = ""
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
    DOCUMENT_URL_EXPIRY_MINUTES: int = 15

    # ------------------------------------------------------------------ #
    # Runtime environment
    # ------------------------------------------------------------------ #
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    # ------------------------------------------------------------------ #
    # CORS
    # ------------------------------------------------------------------ #
    ALLOWED_ORIGINS: str = "*"

    # ------------------------------------------------------------------ #
    # Derived helpers
    # ------------------------------------------------------------------ #
    @property
    def allowed_origins_list(self) -> list[str]:
        """Return ALLOWED_ORIGINS as a list split on commas."""
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",")]

    @property
    def admin_emails_list(self) -> list[str]:
        return [e.strip().lower() for e in self.ADMIN_EMAILS.split(",") if e.strip()]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @field_validator(
        "CULTURAL_WEIGHT", "PERSONALITY_WEIGHT", "LOCATION_WEIGHT", "AGE_WEIGHT"
    )
    @classmethod
    def _weight_must_be_between_0_and_1(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"Weight must be between 0 and 1, got {v}")
        return v

    @field_validator("MIN_COMPATIBILITY_SCORE")
    @classmethod
    def _threshold_is_a_percentage(cls, v: int) -> int:
        if not 0 <= v <= 100:
            raise ValueError(f"Threshold must be between 0 and 100, got {v}")
        return v

    @model_validator(mode="after")
    def _weights_sum_to_one(self) -> "Settings":
        total = (
            self.CULTURAL_WEIGHT
            + self.PERSONALITY_WEIGHT
            + self.LOCATION_WEIGHT
            + self.AGE_WEIGHT
        )
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Scoring weights must sum to 1.0, got {total:.3f}")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached, validated ``Settings`` instance.

    Using ``@lru_cache`` guarantees the .env file is read and validated
    exactly once per process lifetime.  Import this function anywhere you
    need access to configuration::

        from redplad.config import get_settings
        settings = get_settings()
    """
    return Settings()  # type: ignore[call-arg]
