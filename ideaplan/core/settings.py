"""Application settings and configuration."""

from __future__ import annotations

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    APP_NAME: str = "ideaplan"

    # Database configuration
    DATABASE_URL: str = "sqlite:///./data/ideaplan.db"

    # Redis configuration (in-memory broadcaster when unset)
    REDIS_URL: str | None = None

    # Channel namespace for collection change feeds
    CHANGE_CHANNEL_PREFIX: str = "changes:"

    # Presence configuration
    # NOTE: HEARTBEAT_SEC must stay well below PRESENCE_TTL_SEC so that a
    # single missed heartbeat doesn't immediately expire a viewer.
    PRESENCE_TTL_SEC: int = 300
    HEARTBEAT_SEC: int = 30

    # Share links
    SHARE_TOKEN_LENGTH: int = 12
    SHARE_BASE_URL: str = "http://localhost:5173"

    # Refinement chat assistant
    CHAT_ASSISTANT_URL: str | None = None
    CHAT_TIMEOUT_SEC: float = 30.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Pydantic v2 settings: ignore unknown/extra env vars coming from .env
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def _validate_timing(self) -> "Settings":
        if self.HEARTBEAT_SEC * 2 >= self.PRESENCE_TTL_SEC:
            raise ValueError(
                f"Invalid presence timing: HEARTBEAT_SEC={self.HEARTBEAT_SEC} must be "
                f"< PRESENCE_TTL_SEC/2={self.PRESENCE_TTL_SEC / 2}"
            )
        if self.SHARE_TOKEN_LENGTH < 8:
            raise ValueError(
                f"SHARE_TOKEN_LENGTH={self.SHARE_TOKEN_LENGTH} is too short; use at least 8"
            )
        return self


# Global settings instance, read by the API entry point only.
settings = Settings()
