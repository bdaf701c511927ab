"""Application configuration management using Pydantic Settings.

This module defines the `Settings` class, which loads configuration parameters
from environment variables and a `.env` file: the Fission server URL, the
snapshot file location, HTTP behaviour and logging.

The `get_settings` function provides a cached, singleton instance of the
configuration, ensuring consistent settings throughout the application.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict as _SettingsConfigDict

from .snapshot import DEFAULT_SNAPSHOT_FILE


class Settings(BaseSettings):
    """Defines all application configuration parameters.

    Values come from environment variables or a `.env` file. CLI options
    override the matching field for a single invocation.
    """

    model_config = _SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Fission server
    FISSION_URL: str = Field(
        default="",
        description="Fission controller URL, e.g. http://controller.fission (scheme optional)",
    )
    TARGET_NAMESPACE: str = Field(
        default="default", description="Namespace for every v2 resource created by restore"
    )

    # Snapshot
    UPGRADE_STATE_FILE: str = Field(
        default=DEFAULT_SNAPSHOT_FILE,
        description="Path of the JSON snapshot written by dump and read by restore",
    )

    # Logging & runtime behavior
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    HTTP_TIMEOUT: float = Field(default=30.0, description="Timeout (seconds) for every HTTP request")
    FETCH_MAX_ATTEMPTS: int = Field(
        default=5,
        description="Attempts for v1 GET requests on transient transport errors (creation is never retried)",
    )
    ARCHIVE_LITERAL_SIZE_LIMIT: int = Field(
        default=256 * 1024,
        description=(
            "Function code smaller than this many bytes is embedded in the package as a "
            "literal archive; larger code is uploaded to the storage service"
        ),
    )
    DRY_RUN: bool = Field(
        default=False,
        description="If true, restore prints the rewritten resources instead of creating them",
    )

    @field_validator("FISSION_URL", mode="before")
    @classmethod
    def strip_url(cls, v: Any) -> str:
        """Trim whitespace; None and blank values become empty."""
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def upper_log_level(cls, v: Any) -> str:
        return str(v or "INFO").strip().upper()


@lru_cache(maxsize=1)
def get_settings() -> Settings:  # pragma: no cover - trivial
    """Return a cached, singleton instance of the application settings."""
    return Settings()
