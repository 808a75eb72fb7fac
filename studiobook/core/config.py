# studiobook/core/config.py
from datetime import time
from decimal import Decimal
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import EXTRA_TIME_SLAB_MINUTES, LOCK_TTL_MARGIN_SECONDS

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path.cwd() / ".env"
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    database_url: str = Field(
        default="sqlite+pysqlite:///./studiobook.db",
        alias="DATABASE_URL",
        description="SQLAlchemy URL of the reservation store",
    )
    redis_url: Optional[str] = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis URL for cross-process booking locks (process-local locks when unset)",
    )

    # Scheduling policy (local WITA wall-clock)
    operating_start: time = Field(default=time(10, 0), alias="OPERATING_START")
    operating_end: time = Field(default=time(20, 30), alias="OPERATING_END")
    self_photo_gap_minutes: int = Field(default=5, ge=0, alias="SELF_PHOTO_GAP_MINUTES")
    regular_gap_minutes: int = Field(default=10, ge=0, alias="REGULAR_GAP_MINUTES")
    walk_in_conflict_scope: Literal["shared", "separate"] = Field(
        default="shared",
        alias="WALK_IN_CONFLICT_SCOPE",
        description="Whether walk-in sessions and scheduled bookings block each other",
    )

    # Billing policy (integer IDR amounts)
    extra_time_slab_minutes: int = Field(
        default=EXTRA_TIME_SLAB_MINUTES, gt=0, alias="EXTRA_TIME_SLAB_MINUTES"
    )
    self_photo_extra_rate: int = Field(default=5_000, ge=0, alias="SELF_PHOTO_EXTRA_RATE")
    regular_extra_rate: int = Field(default=15_000, ge=0, alias="REGULAR_EXTRA_RATE")
    first_installment_ratio: Decimal = Field(
        default=Decimal("0.5"), gt=0, lt=1, alias="FIRST_INSTALLMENT_RATIO"
    )

    # Payment gateway (Xendit invoices)
    currency: str = Field(default="IDR", alias="CURRENCY")
    invoice_duration_seconds: int = Field(default=86_400, gt=0, alias="INVOICE_DURATION_SECONDS")
    xendit_secret_key: SecretStr = Field(default=SecretStr(""), alias="XENDIT_SECRET_KEY")
    xendit_api_url: str = Field(default="https://api.xendit.co", alias="XENDIT_API_URL")
    gateway_timeout_seconds: float = Field(default=30.0, gt=0, alias="GATEWAY_TIMEOUT_SECONDS")

    # Locks
    lock_ttl_seconds: int = Field(default=60, gt=0, alias="LOCK_TTL_SECONDS")
    lock_wait_timeout_seconds: float = Field(default=10.0, gt=0, alias="LOCK_WAIT_TIMEOUT_SECONDS")
    lock_namespace: str = Field(default="studiobook", alias="LOCK_NAMESPACE")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return (value or "INFO").upper()

    @model_validator(mode="after")
    def _check_operating_window(self) -> "Settings":
        if self.operating_end <= self.operating_start:
            raise ValueError("OPERATING_END must be after OPERATING_START")
        return self

    @model_validator(mode="after")
    def _check_lock_outlives_gateway(self) -> "Settings":
        minimum = self.gateway_timeout_seconds + LOCK_TTL_MARGIN_SECONDS
        if self.lock_ttl_seconds < minimum:
            raise ValueError(
                "LOCK_TTL_SECONDS must be at least GATEWAY_TIMEOUT_SECONDS + "
                f"{LOCK_TTL_MARGIN_SECONDS} ({minimum:g})"
            )
        return self


settings = Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Apply the standard log format to the root logger."""
    logging.basicConfig(level=(level or settings.log_level), format=LOG_FORMAT)
