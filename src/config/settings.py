"""Application-wide configuration loading and validation."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    log_level: str = Field(default="INFO")

    # OpenAI Realtime
    openai_api_key: str | None = Field(default=None)
    openai_realtime_url: str = Field(default="wss://api.openai.com/v1/realtime")
    openai_realtime_model: str = Field(default="gpt-4o-mini-realtime-preview")
    openai_voice: str = Field(default="verse")
    openai_temperature: float = Field(default=0.8, ge=0.0, le=2.0)
    session_update_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Pause between opening the realtime socket and sending the session configuration.",
    )
    openai_respond_after_tool_output: bool = Field(
        default=False,
        description="Send response.create after a tool result so the model answers without new caller speech.",
    )

    # Document lookup (biography provider)
    document_lookup_url: str | None = Field(
        default=None,
        description="Base URL of the document lookup endpoint; documents are fetched from <url>/<key>.",
    )
    biography_document_key: str = Field(default="story")
    document_lookup_timeout_seconds: float | None = Field(
        default=None,
        description="Client-side timeout for lookups. None waits for the transport to fail.",
    )

    # Twilio (Voice)
    public_base_url: str | None = Field(
        default=None,
        description="Public base URL for Twilio webhooks (e.g. https://<ngrok>.ngrok-free.app).",
    )
    connect_announcement: str = Field(default="Connecting to A.I. assistant.")

    data_dir: Path = Field(default=Path("./data"))

    @field_validator("data_dir")
    @classmethod
    def ensure_data_dir(cls, value: Path) -> Path:
        value.mkdir(parents=True, exist_ok=True)
        return value

    @property
    def documents_dir(self) -> Path:
        return self.data_dir / "documents"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
