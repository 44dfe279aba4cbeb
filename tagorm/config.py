"""Configuration settings for tagorm.

Pydantic Settings loads the database connection, logging and
migration options from environment variables prefixed with `TAGORM_`
(nested with `__`, e.g. `TAGORM_DATABASE__DSN`), optionally layered over a
YAML file. Environment variables win over the file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.engine import Engine
from .ports.db_api.registry import DialectRegistry, default_registry

_LOG_LEVELS = {"debug", "info", "warning", "error", "critical"}
_LOG_FORMATS = {"text", "json"}


class DatabaseSettings(BaseModel):
    # Pool values are handed to the connection layer; the engine ignores them.
    dialect: str = "sqlite"
    dsn: str = ":memory:"
    max_idle_conns: int = Field(10, ge=0)
    max_open_conns: int = Field(100, ge=0)
    conn_max_lifetime: int = Field(3600, ge=0, description="Seconds")

    @field_validator("dialect")
    @classmethod
    def _normalize_dialect(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("database dialect must not be empty")
        return value

    @field_validator("dsn")
    @classmethod
    def _require_dsn(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("database dsn must not be empty")
        return value


class LoggingSettings(BaseModel):
    level: str = "info"
    format: str = "text"

    @field_validator("level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in _LOG_LEVELS:
            raise ValueError(f"log level must be one of {sorted(_LOG_LEVELS)}")
        return value

    @field_validator("format")
    @classmethod
    def _check_format(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in _LOG_FORMATS:
            raise ValueError(f"log format must be one of {sorted(_LOG_FORMATS)}")
        return value


class MigrationSettings(BaseModel):
    directory: str = "migrations"
    table_name: str = "schema_migrations"


class Settings(BaseSettings):
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    migration: MigrationSettings = Field(default_factory=MigrationSettings)

    model_config = SettingsConfigDict(
        env_prefix="TAGORM_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


def load_settings(path: Optional[Union[str, Path]] = None) -> Settings:
    """Load settings from an optional YAML file, then apply environment overrides.

    Args:
        path: YAML file whose top level is a mapping of settings sections.

    Returns:
        Validated settings; `TAGORM_*` variables win over file values.

    Raises:
        ValueError: If the file does not hold a mapping.
    """

    file_data: Dict[str, Any] = {}
    if path is not None:
        with open(path, "r", encoding="utf-8") as fh:
            loaded = yaml.safe_load(fh) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"config file {path} must contain a mapping at the top level")
        file_data = loaded

    env_data = Settings().model_dump(exclude_unset=True)
    return Settings(**_deep_merge(file_data, env_data))


def open_engine(
    settings: Optional[Settings] = None,
    *,
    registry: Optional[DialectRegistry] = None,
) -> Engine:
    """Connect the database named by the settings and wrap it in an `Engine`.

    Args:
        settings: Loaded settings; `load_settings()` is used when omitted.
        registry: Dialect registry to build the adapter from.

    Raises:
        RegistryError: If the configured dialect is not registered.
    """

    settings = settings or load_settings()
    registry = registry or default_registry()
    database = registry.create(settings.database.dialect)
    database.connect(settings.database.dsn)
    return Engine(database)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


__all__ = [
    "DatabaseSettings",
    "LoggingSettings",
    "MigrationSettings",
    "Settings",
    "load_settings",
    "open_engine",
]
