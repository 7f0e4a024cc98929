"""
Configuration and settings for the time bank backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings (prefix `TIMEBANK_`)."""

    model_config = SettingsConfigDict(
        env_prefix="TIMEBANK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    # Firebase project. Without a project id the in-memory backends are used.
    firebase_project_id: Optional[str] = Field(default=None)
    firebase_api_key: Optional[str] = Field(default=None)
    firebase_credentials_path: Optional[str] = Field(default=None)
    identity_toolkit_url: str = Field(
        default="https://identitytoolkit.googleapis.com/v1"
    )

    # Where verification emails send the member back to.
    app_origin: str = Field(default="http://localhost:3000")

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)
    # Runtime network-state signal; when set every remote read is skipped.
    offline_mode: bool = Field(default=False)

    # Timeout budgets (seconds) per operation class.
    probe_timeout_seconds: float = Field(default=2.0, gt=0)
    ping_timeout_seconds: float = Field(default=3.0, gt=0)
    query_timeout_seconds: float = Field(default=25.0, gt=0)
    write_timeout_seconds: float = Field(default=20.0, gt=0)
    identity_timeout_seconds: float = Field(default=20.0, gt=0)

    cache_ttl_seconds: float = Field(default=5 * 60, gt=0)
    default_max_items: int = Field(default=50, ge=1, le=500)

    # Local persistence for offline-created services.
    local_storage_backend: Literal["memory", "file", "redis"] = Field(
        default="memory"
    )
    local_storage_path: str = Field(default="data/local_storage.json")
    redis_url: Optional[str] = Field(default=None)
    redis_key_prefix: str = Field(default="timebank:")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
