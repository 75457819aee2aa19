"""
Engine settings loaded from environment variables.

    LIVEGRAPH_OPERATION_TIMEOUT=5
    LIVEGRAPH_SUBSCRIBER_QUEUE_SIZE=100
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="LIVEGRAPH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Execution
    operation_timeout: Optional[float] = Field(default=30.0, gt=0)

    # Mutations
    mutation_lock_timeout: float = Field(default=5.0, gt=0)
    photo_url_base: str = "http://localhost:4000/img/photos"

    # Subscriptions
    subscriber_queue_size: int = Field(default=100, ge=1)
    redis_url: Optional[str] = None

    # Logging
    log_level: str = "INFO"


@lru_cache
def get_settings() -> EngineSettings:
    return EngineSettings()


def configure_logging(settings: Optional[EngineSettings] = None):
    """Set the livegraph logger level; handlers are left to the embedding application."""
    settings = settings or get_settings()
    logging.getLogger("livegraph").setLevel(settings.log_level.upper())
