"""Configuration management for formchat."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_GREETING = "hello, i want to fill the form"
DEFAULT_SENTINEL = "finish"


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="FORMCHAT_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API Configuration
    api_base: str = Field(default="http://localhost:3000/api", description="Base URL of the form API")
    api_key: str | None = Field(default=None, description="Optional bearer token for the form API")
    request_timeout_seconds: float = Field(default=60.0, description="Timeout for chat and submission requests")
    stream_protocol: Literal["text", "data"] = Field(default="text", description="Streaming response encoding")

    # Dialogue Configuration
    greeting: str = Field(default=DEFAULT_GREETING, description="Turn sent when the session begins")
    completion_sentinel: str = Field(default=DEFAULT_SENTINEL, description="Field marker meaning dialogue complete")
    preview: bool = Field(default=False, description="Run sessions in preview mode")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Log level")

    @field_validator("api_base")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("completion_sentinel")
    @classmethod
    def _sentinel_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("completion sentinel must not be blank")
        return value

    def form_endpoint(self, form_id: str) -> str:
        return f"{self.api_base}/form/{form_id}/conversation"


def get_settings(**overrides: object) -> Settings:
    """Get application settings.

    Args:
        overrides: Explicit values taking precedence over environment and .env

    Returns:
        Settings instance
    """
    values = {key: value for key, value in overrides.items() if value is not None}
    return Settings(**values)
