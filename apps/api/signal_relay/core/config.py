"""Application configuration for the signaling relay."""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_env: str = Field(default="development")
    log_level: str = Field(default="INFO")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000, ge=1, le=65535)
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])

    database_url: str = Field(default="sqlite+aiosqlite:///./signal_relay.db")
    database_ssl_required: bool = Field(default=False)

    message_retention_seconds: int = Field(default=3600, ge=1)
    peer_retention_seconds: int = Field(default=3600, ge=1)
    active_peer_window_seconds: int = Field(default=300, ge=1)
    max_stored_messages: int = Field(default=1000, ge=0)
    host_peer_prefix: str = Field(default="HOST_")

    stun_urls: list[str] = Field(default_factory=lambda: ["stun:stun.l.google.com:19302"])
    turn_urls: list[str] = Field(default_factory=list)
    turn_shared_secret: str = Field(default="")
    turn_default_ttl_seconds: int = Field(default=86400, ge=60)
    turn_max_ttl_seconds: int = Field(default=172800, ge=60)

    @field_validator("cors_allow_origins", "stun_urls", "turn_urls", mode="before")
    @classmethod
    def _split_lists(cls, value: object) -> object:
        """Allow comma-separated env values for list settings."""

        if isinstance(value, str):
            parts = [item.strip() for item in value.split(",") if item.strip()]
            return parts
        return value


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


settings = get_settings()
