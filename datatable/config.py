"""
Configuration for datatable.

Settings come from environment variables with the ``DATATABLE_`` prefix,
e.g. ``DATATABLE_ID_STRATEGY=random``. Everything has a default that works
for local use, so constructing ``DataTableSettings()`` with no environment
is fine.

Invariants:
    - Settings are only read at construction; stores never consult the
      environment themselves
    - validate_settings() must pass before settings are handed to a factory

How to change safely:
    - Add new settings with defaults that keep current behaviour
"""

from __future__ import annotations

import logging

from pydantic import Field
from pydantic_settings import BaseSettings

from .ids import MAX_ID

logger = logging.getLogger(__name__)


class DataTableSettings(BaseSettings):
    """datatable configuration."""

    # Column names
    id_column: str = Field(default="id")
    version_id_column: str = Field(default="version_id")

    # Id assignment
    id_strategy: str = Field(default="sequential", description="sequential or random")
    random_id_min: int = Field(default=1)
    random_id_max: int = Field(default=MAX_ID)
    random_id_max_attempts: int = Field(default=1000)

    # SQLite
    sqlite_busy_timeout_ms: int = Field(default=5000)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="text", description="text or json")

    model_config = {"env_prefix": "DATATABLE_"}

    def validate_settings(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.id_strategy not in ("sequential", "random"):
            raise ValueError(
                f"Invalid DATATABLE_ID_STRATEGY '{self.id_strategy}'. "
                "Must be one of: sequential, random"
            )
        if self.id_strategy == "random":
            if self.random_id_min < 1:
                raise ValueError("DATATABLE_RANDOM_ID_MIN must be positive")
            if self.random_id_max < self.random_id_min:
                raise ValueError("DATATABLE_RANDOM_ID_MAX must not be less than DATATABLE_RANDOM_ID_MIN")
            if self.random_id_max_attempts < 1:
                raise ValueError("DATATABLE_RANDOM_ID_MAX_ATTEMPTS must be at least 1")
        if self.id_column == self.version_id_column:
            raise ValueError("DATATABLE_ID_COLUMN and DATATABLE_VERSION_ID_COLUMN must differ")
        if self.log_format not in ("text", "json"):
            raise ValueError(f"Invalid DATATABLE_LOG_FORMAT '{self.log_format}'. Must be text or json")

    def log_config(self) -> None:
        logger.info(
            "datatable configuration loaded",
            extra={
                "id_column": self.id_column,
                "version_id_column": self.version_id_column,
                "id_strategy": self.id_strategy,
                "random_id_min": self.random_id_min,
                "random_id_max": self.random_id_max,
                "random_id_max_attempts": self.random_id_max_attempts,
                "sqlite_busy_timeout_ms": self.sqlite_busy_timeout_ms,
                "log_level": self.log_level,
            },
        )
