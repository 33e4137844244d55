# backend/wellness/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BRAND_NAME = "Wellness Marketplace"


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


_BACKEND_ROOT = Path(__file__).resolve().parents[2]
_DEFAULT_SECRET_KEY = SecretStr("dev-only-secret-key-change-me")

logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = _BACKEND_ROOT / ".env"
    logger.info(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    # Auth
    secret_key: SecretStr = Field(
        default=_DEFAULT_SECRET_KEY,
        description="Secret key for JWT tokens",
    )
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 720  # 12 hours

    environment: Literal["development", "production", "test"] = Field(
        default="development", alias="ENVIRONMENT"
    )
    is_testing: bool = False  # Set to True when running tests
    log_level: str = Field(default="INFO", description="Root log level")

    database_url: str = Field(
        default=f"sqlite:///{_BACKEND_ROOT / 'wellness.db'}",
        description="SQLAlchemy database URL",
    )
    database_echo: bool = False

    # Scheduling policy
    default_break_minutes: int = Field(
        default=15, ge=0, description="Gap between generated appointment slots"
    )

    # Payout policy: the therapist receives this share of the service price.
    # The destination of the remainder is a product decision, not modelled here.
    therapist_payout_rate: float = Field(default=0.40, gt=0, le=1)

    # Payment gateway
    payment_gateway_base_url: str = Field(default="https://api.razorpay.com/v1")
    payment_gateway_key_id: str = Field(default="")
    payment_gateway_key_secret: SecretStr = Field(default=SecretStr(""))
    payment_gateway_timeout_seconds: float = Field(default=10.0, gt=0)
    payment_currency: str = Field(default="INR")
    # Share of the service price charged up front when an order is created.
    advance_payment_rate: float = Field(default=0.5, gt=0, le=1)

    # Background sweep
    redis_url: str = "redis://localhost:6379"
    expiry_sweep_hour: int = Field(default=1, ge=0, le=23)

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> str:
        if value is None:
            return "INFO"
        normalized = str(value).strip().upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError("LOG_LEVEL must be a standard logging level name")
        return normalized

    def get_database_url(self, override: Optional[str] = None) -> str:
        """Return the database URL, honouring an explicit override."""
        return override or self.database_url


settings = Settings()
