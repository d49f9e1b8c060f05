"""Rate limiting settings."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class RateLimitSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    RATE_LIMIT_PAUSED: bool = False
    RATE_LIMIT_REQUESTS: int = 5
    RATE_LIMIT_WINDOW_SECONDS: int = 60 * 60
    RATE_LIMIT_BACKEND: Literal["memory", "redis"] = "memory"
