"""
Configuration and settings for the relay service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    log_level: str = Field(default="INFO")

    # Upstream LLM (Anthropic Messages API)
    anthropic_api_key: Optional[str] = Field(default=None)
    anthropic_base_url: str = Field(default="https://api.anthropic.com")
    anthropic_version: str = Field(default="2023-06-01")
    default_model: str = Field(default="claude-sonnet-4-6")
    default_max_tokens: int = Field(default=4096)
    upstream_timeout: float = Field(default=600.0)
    upstream_connect_timeout: float = Field(default=10.0)

    # Streaming
    stream_mode: Literal["auto", "passthrough", "pump"] = Field(default="auto")
    pump_buffer_chunks: int = Field(default=8, ge=1)

    # Blob store (S3-compatible)
    use_in_memory_backends: bool = Field(default=False)
    blob_store_name: str = Field(default="schedule-helper")
    blob_bucket: Optional[str] = Field(default=None)
    blob_endpoint: Optional[str] = Field(default=None)
    blob_region: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
