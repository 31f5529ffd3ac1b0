"""
Configuration for Localbase.

All configuration comes from environment variables prefixed with
LOCALBASE_ (or from keyword arguments in tests). Defaults are suitable for
local development: an in-memory backend seeded with demo data.

Invariants:
    - Every setting has a default
    - The table prefix and the session key never collide, otherwise the
      session entry would be loaded as a table

How to change safely:
    - Add new settings with defaults that keep existing storage readable
    - Changing table_prefix or session_key orphans previously persisted data
"""

from __future__ import annotations

import logging
from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class StorageBackend(str, Enum):
    """Supported key-value storage backends."""

    MEMORY = "memory"
    SQLITE = "sqlite"


class Settings(BaseSettings):
    """Engine configuration."""

    # Storage
    storage_backend: str = Field(default="memory", description="memory or sqlite")
    sqlite_path: str = Field(default="localbase.db")
    table_prefix: str = Field(default="localbase_table_")
    session_key: str = Field(default="localbase_session")

    # Startup
    seed_on_start: bool = Field(default=True, description="Fill empty seed tables at startup")
    seed_file: str | None = Field(default=None, description="YAML seed file replacing built-in seeds")

    # Writes
    validate_writes: bool = Field(default=False, description="Type-check known columns on write")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="text", description="text or json")

    model_config = {"env_prefix": "LOCALBASE_"}

    @property
    def backend(self) -> StorageBackend:
        """Storage backend as an enum member."""
        return StorageBackend(self.storage_backend.lower())

    def validate_backend(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        try:
            backend = self.backend
        except ValueError:
            valid = ", ".join(b.value for b in StorageBackend)
            raise ValueError(
                f"Invalid LOCALBASE_STORAGE_BACKEND '{self.storage_backend}'. Must be one of: {valid}"
            )

        if backend == StorageBackend.SQLITE and not self.sqlite_path:
            raise ValueError("LOCALBASE_SQLITE_PATH is required when storage_backend=sqlite")

        if self.session_key.startswith(self.table_prefix):
            raise ValueError(
                f"session_key '{self.session_key}' must not start with table_prefix '{self.table_prefix}'"
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Engine configuration loaded",
            extra={
                "storage_backend": self.storage_backend,
                "sqlite_path": self.sqlite_path if self.backend == StorageBackend.SQLITE else None,
                "seed_on_start": self.seed_on_start,
                "seed_file": self.seed_file,
                "validate_writes": self.validate_writes,
            },
        )
