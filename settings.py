# settings.py
from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    ENV: Literal["dev", "staging", "prod"] = "dev"
    APP_NAME: str = "payout_distributor"

    # -----------------------
    # DB
    # -----------------------
    DATABASE_URL: str = Field(default="")
    DB_POOL_MIN: int = 1
    DB_POOL_MAX: int = 10
    DB_CONNECT_TIMEOUT_S: int = 5

    # -----------------------
    # HTTP server
    # -----------------------
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 5555
    LOG_LEVEL: str = "INFO"

    # -----------------------
    # Auto distribution
    # -----------------------
    AUTO_DISTRIBUTION_ENABLED: bool = False
    AUTO_DISTRIBUTION_INTERVAL_S: int = 30
    ACCEPTANCE_TIME: int = 40
    SCHEDULER_SHUTDOWN_TIMEOUT_S: float = 30.0

    # -----------------------
    # Events (SSE)
    # -----------------------
    EVENT_BUFFER_SIZE: int = 100
    SSE_KEEPALIVE_S: float = 15.0

    # -----------------------
    # Merchant callbacks
    # -----------------------
    CALLBACK_TIMEOUT_S: float = 15.0
    CALLBACK_RESPONSE_MAX_CHARS: int = 4000


settings = Settings()


def validate_env_settings() -> None:
    """
    Fail fast outside dev when required settings are missing or nonsensical.
    """
    problems: list[str] = []

    if settings.ENV != "dev" and not (settings.DATABASE_URL or "").strip():
        problems.append("DATABASE_URL")

    if settings.DB_POOL_MIN < 1 or settings.DB_POOL_MAX < settings.DB_POOL_MIN:
        problems.append("DB_POOL_MIN/DB_POOL_MAX")
    if settings.AUTO_DISTRIBUTION_INTERVAL_S < 1:
        problems.append("AUTO_DISTRIBUTION_INTERVAL_S")
    if settings.CALLBACK_TIMEOUT_S <= 0:
        problems.append("CALLBACK_TIMEOUT_S")
    if settings.EVENT_BUFFER_SIZE < 1:
        problems.append("EVENT_BUFFER_SIZE")

    if problems:
        raise RuntimeError("Invalid or missing settings: " + ", ".join(problems))
