"""
Configuration management for docschema.

All configuration is read from environment variables prefixed with
DOCSCHEMA_ (for example DOCSCHEMA_STORAGE_BACKEND=sqlite).

Invariants:
    - All settings have sensible defaults for local development
    - Settings are read once; the registry does not re-read the environment

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - New storage backends need a StorageBackend member and a branch in
      storage.create_storage()
"""

from __future__ import annotations

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings


class StorageBackend(Enum):
    """Supported registry storage backends."""

    MEMORY = "memory"
    SQLITE = "sqlite"


class LogFormat(Enum):
    """Supported log output formats."""

    TEXT = "text"
    JSON = "json"


class Settings(BaseSettings):
    """docschema configuration."""

    # Registry
    validate_schemas: bool = Field(
        default=True, description="Check schemas against the meta-schema on registration"
    )
    schema_base_uri: str = Field(default="https://schemas.documentation-system.org")

    # Storage
    storage_backend: StorageBackend = Field(default=StorageBackend.MEMORY)
    sqlite_path: str = Field(default="docschema.db")
    sqlite_busy_timeout_ms: int = Field(default=5000)
    storage_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description=(
            "Per-call storage timeout enforced by the registry; an abandoned "
            "SQLite call still finishes in its worker thread"
        ),
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_format: LogFormat = Field(default=LogFormat.TEXT)

    model_config = {"env_prefix": "DOCSCHEMA_"}
