# eventtalent/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).resolve().parents[2] / ".env"
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: Literal["local", "development", "staging", "production", "test"] = Field(
        default="local",
        description="Deployment environment name",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./eventtalent.db",
        description="SQLAlchemy database URL",
    )
    database_pool_size: int = Field(default=5, ge=1)
    database_max_overflow: int = Field(default=10, ge=0)

    # Redis (locks, celery broker)
    redis_url: str = Field(default="redis://localhost:6379/0")
    booking_lock_enabled: bool = Field(
        default=True,
        description="Guard booking mutations with a short-lived Redis mutex",
    )
    booking_lock_ttl_seconds: int = Field(default=90, ge=1)
    booking_lock_wait_seconds: float = Field(
        default=5.0,
        ge=0,
        description="How long a request waits for a busy booking before answering 409",
    )
    booking_lock_poll_seconds: float = Field(default=0.05, gt=0)

    # Paystack (payment + payout gateway)
    paystack_secret_key: SecretStr = Field(
        default=SecretStr(""),
        description="Paystack secret key; also signs inbound webhooks",
    )
    paystack_base_url: str = Field(default="https://api.paystack.co")
    payment_callback_url: str = Field(
        default="http://localhost:8000/api/v1/payments/callback",
        description="Browser redirect target after checkout",
    )
    gateway_timeout_seconds: float = Field(default=15.0, gt=0)

    # Collaborator services
    availability_service_url: str = Field(default="http://localhost:8100")
    notification_service_url: str = Field(default="http://localhost:8200")
    use_fake_gateways: bool = Field(
        default=False,
        description="Use in-memory gateway/collaborator clients (local dev and tests)",
    )

    # Scheduled job surface
    cron_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Bearer token expected on internal cron endpoints",
    )

    slow_operation_threshold_ms: float = Field(default=1000.0, ge=0)

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("environment", mode="before")
    @classmethod
    def _normalize_environment(cls, value: object) -> object:
        if isinstance(value, str):
            normalized = value.strip().lower()
            aliases = {"dev": "development", "stg": "staging", "prod": "production"}
            return aliases.get(normalized, normalized)
        return value

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


settings = Settings()
