"""Deploy-time settings for QuizHub.

Values come from environment variables prefixed with ``QUIZHUB_`` or from a
local ``.env`` file. Fixed product rules live in ``quizhub.constants``.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from quizhub.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quizhub.constants.quiz_constants import (
    EXPIRY_SWEEP_INTERVAL_SECONDS,
    NOTIFICATION_POLL_INTERVAL_SECONDS,
)


class Settings(BaseSettings):
    """Application settings loaded from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="QUIZHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    data_dir: Path | None = Field(
        default=None,
        description="Directory holding one JSON file per collection; unset keeps data in memory",
    )
    host: str = Field(default=DEFAULT_HOST)
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    log_level: str = Field(default="INFO")
    notification_poll_seconds: float = Field(default=NOTIFICATION_POLL_INTERVAL_SECONDS, gt=0)
    expiry_sweep_seconds: float = Field(default=EXPIRY_SWEEP_INTERVAL_SECONDS, gt=0)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
