"""
Configuration for ContentDB.

All configuration is done via environment variables (prefix CONTENTDB_),
loaded with pydantic-settings.

Invariants:
    - All settings have sensible defaults for local development
    - Secrets (API keys) are never logged

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep env variable names stable; deployments depend on them
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class StorageBackend(str, Enum):
    """Supported store implementations."""

    MEMORY = "memory"
    SQLITE = "sqlite"
    HTTP = "http"


class Settings(BaseSettings):
    """ContentDB configuration loaded from environment."""

    # Storage
    storage_backend: StorageBackend = Field(
        default=StorageBackend.MEMORY, description="Store implementation"
    )
    data_dir: str = Field(default="./data", description="Directory for SQLite tenant files")
    sqlite_wal_mode: bool = Field(default=True, description="Enable SQLite WAL mode")
    sqlite_busy_timeout_ms: int = Field(default=5000, ge=0, description="SQLite busy timeout")
    http_base_url: str = Field(
        default="http://localhost:8080", description="Store gateway base URL"
    )
    http_api_key: str | None = Field(default=None, description="Bearer token for the gateway")
    http_timeout_seconds: float = Field(default=10.0, gt=0, description="Request timeout")
    seed_examples: bool = Field(
        default=False, description="Seed in-memory tenants with the example schemas"
    )

    # Engine
    purge_concurrency: int = Field(
        default=8, ge=1, description="Concurrent item writes while purging a field"
    )
    allow_direct_publish: bool = Field(
        default=False, description="Allow draft -> published without review"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    log_format: Literal["json", "text"] = Field(default="text", description="Log output format")

    # Store gateway
    gateway_host: str = Field(default="0.0.0.0", description="Gateway bind host")
    gateway_port: int = Field(default=8080, description="Gateway bind port")
    gateway_api_key: str | None = Field(
        default=None, description="Bearer token required by the gateway (unset = open)"
    )
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins",
    )

    model_config = {"env_prefix": "CONTENTDB_"}

    def to_safe_dict(self) -> dict[str, object]:
        """Settings with secrets masked, for logging."""
        data = self.model_dump(mode="json")
        for key in ("http_api_key", "gateway_api_key"):
            if data.get(key):
                data[key] = "***"
        return data
