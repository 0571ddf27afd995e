"""Configuration management for the Planning Poker server."""

from __future__ import annotations

from pydantic import computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .decks import DECKS


class Config(BaseSettings):
    """Configuration settings for the Planning Poker server."""

    # Server settings
    server_host: str = "127.0.0.1"
    server_port: int = 8000
    public_base_url: str | None = None
    cors_origins_str: str = "*"

    # Room defaults
    default_deck: str = "FIBONACCI"

    # Treat a dropped Socket.IO connection as the participant leaving the room
    leave_on_disconnect: bool = True

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("default_deck")
    @classmethod
    def _known_deck(cls, value: str) -> str:
        if value not in DECKS:
            raise ValueError(f"Unknown deck type: {value}")
        return value

    @computed_field  # type: ignore[misc]
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins from environment variable."""
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]
