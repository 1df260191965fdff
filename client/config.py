"""
Configuration for the client data layer.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Environment-backed settings, read from `ROBINHOOD_*` variables."""

    model_config = SettingsConfigDict(
        env_prefix="ROBINHOOD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_base_url: str = Field(default="http://localhost:8000/api")
    request_timeout: float = Field(default=30.0, gt=0)

    # Change feed; without it subscriptions are unavailable
    redis_url: Optional[str] = Field(default=None)
    redis_channel_prefix: str = Field(default="robinhood:changes")


@lru_cache(maxsize=1)
def get_client_settings() -> ClientSettings:
    """Return cached settings instance."""
    return ClientSettings()
