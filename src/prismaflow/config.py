"""
prismaflow Configuration

Centralized configuration using Pydantic Settings.
All configuration is loaded from environment variables with sensible defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Document store configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="", extra="ignore"
    )

    backend: Literal["sqlite", "memory"] = Field(
        default="sqlite", alias="PRISMAFLOW_STORE_BACKEND"
    )
    db_path: Path = Field(
        default=Path("~/.prismaflow/prismaflow.db"), alias="PRISMAFLOW_DB_PATH"
    )

    @field_validator("db_path", mode="before")
    @classmethod
    def resolve_path(cls, v: str | Path) -> Path:
        """Resolve path and expand user."""
        return Path(v).expanduser().resolve()


class IngestionSettings(BaseSettings):
    """Batch ingestion configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="", extra="ignore"
    )

    # Sentinel the search collaborator writes when a source has no abstract
    missing_abstract_placeholder: str = Field(
        default="Resumen no disponible para este registro.",
        alias="PRISMAFLOW_MISSING_ABSTRACT_PLACEHOLDER",
    )
    max_concurrent_writes: int = Field(
        default=16, ge=1, le=500, alias="PRISMAFLOW_MAX_CONCURRENT_WRITES"
    )


class ScreeningSettings(BaseSettings):
    """AI-assisted screening defaults."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="", extra="ignore"
    )

    confirmed_confidence: Literal["low", "medium", "high"] = Field(
        default="medium", alias="PRISMAFLOW_CONFIRMED_CONFIDENCE"
    )
    uncertain_confidence: Literal["low", "medium", "high"] = Field(
        default="low", alias="PRISMAFLOW_UNCERTAIN_CONFIDENCE"
    )
    fallback_justification: str = Field(
        default="Sin respuesta del modelo para este registro.",
        alias="PRISMAFLOW_FALLBACK_JUSTIFICATION",
    )


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="", extra="ignore"
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", alias="LOG_LEVEL"
    )
    log_format: Literal["json", "text"] = Field(default="text", alias="LOG_FORMAT")


class Settings(BaseSettings):
    """
    Main prismaflow settings aggregator.

    Usage:
        from prismaflow.config import get_settings
        settings = get_settings()
        print(settings.storage.db_path)
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    storage: StorageSettings = Field(default_factory=StorageSettings)
    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    screening: ScreeningSettings = Field(default_factory=ScreeningSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def ensure_directories(self) -> None:
        """Ensure required directories exist."""
        if self.storage.backend == "sqlite":
            self.storage.db_path.parent.mkdir(parents=True, exist_ok=True)


# Singleton pattern for settings
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance (singleton)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (useful for testing)."""
    global _settings
    _settings = None
