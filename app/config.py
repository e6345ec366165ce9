"""Application configuration settings."""
from __future__ import annotations

import os
from functools import lru_cache

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Runtime toggles -----------------------------------------------------
# Execution environment: "dev" | "test" | "staging" | "prod"
ENV = os.getenv("APP_ENV", "dev").lower()


class Settings(BaseSettings):
    """Environment configuration for the Bát Cơm Mặn payment backend."""

    app_env: str = ENV
    database_url: str = "sqlite:///batcomman.db"
    LOG_LEVEL: str = "INFO"
    ALLOW_DB_CREATE_ALL: bool = True
    CORS_ALLOW_ORIGINS: list[str] = [
        "https://food.syncbim.com",
        "http://localhost:3000",
    ]
    SENTRY_DSN: str | None = None
    PROMETHEUS_ENABLED: bool = False

    # --- PayOS gateway ---------------------------------------------------
    PAYOS_CLIENT_ID: str | None = None
    PAYOS_API_KEY: str | None = None
    PAYOS_CHECKSUM_KEY: str | None = None
    PAYOS_API_URL: str = "https://api-merchant.payos.vn"
    PAYOS_TIMEOUT_SECONDS: float = 15.0
    PAYOS_LINK_TTL_MINUTES: int = 15
    APP_BASE_URL: str = Field(
        default="http://localhost:3000",
        validation_alias=AliasChoices("APP_BASE_URL", "NEXT_PUBLIC_APP_URL"),
    )
    MIN_PAYMENT_AMOUNT: int = 2000

    # --- Manual (MoMo QR / SMS) payments ---------------------------------
    PENDING_PAYMENT_TTL_HOURS: int = 24
    MOMO_PHONE: str = "0123456789"
    MOMO_NAME: str = "BAT COM MAN"
    SMS_WEBHOOK_SECRET: str | None = None

    # --- Chat notifications & reminders ----------------------------------
    CHAT_WEBHOOK_URL: str | None = None
    CHAT_TIMEOUT_SECONDS: float = 10.0
    CRON_SECRET: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CRON_SECRET", "CRONJOB_SECRET"),
    )
    REMINDER_START_HOUR: int = 14
    REMINDER_END_HOUR: int = 18
    REMINDER_TIMEZONE: str = "Asia/Ho_Chi_Minh"
    SCHEDULER_ENABLED: bool = False
    REMINDER_INTERVAL_MINUTES: int = 60

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator(
        "PAYOS_CLIENT_ID",
        "PAYOS_API_KEY",
        "PAYOS_CHECKSUM_KEY",
        "SMS_WEBHOOK_SECRET",
        "CRON_SECRET",
        "CHAT_WEBHOOK_URL",
    )
    @classmethod
    def _strip_empty_secret(cls, value: str | None) -> str | None:
        """Normalise empty secrets to ``None`` for easier validation."""

        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    @property
    def payos_configured(self) -> bool:
        return bool(self.PAYOS_CLIENT_ID and self.PAYOS_API_KEY and self.PAYOS_CHECKSUM_KEY)


class AppInfo(BaseModel):
    name: str = "batcomman-payments"
    version: str = "0.1.0"


settings = Settings()


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""

    return settings


__all__ = [
    "ENV",
    "Settings",
    "AppInfo",
    "settings",
    "get_settings",
]
