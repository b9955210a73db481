"""Settings for the feature-flag schema tooling."""

from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ALLOWED_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
ALLOWED_LOG_FORMATS = frozenset({"console", "json"})
ALLOWED_SCHEMA_VERSIONING = frozenset({"alembic", "unversioned"})

SchemaVersioning = Literal["alembic", "unversioned"]


def flip_settings_config() -> SettingsConfigDict:
    """Return the standard ``BaseSettings`` config dict (``FLIP_`` prefix)."""

    return SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FLIP_",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
        str_strip_whitespace=True,
    )


def create_settings_accessors[T](
    settings_type: type[T],
) -> tuple[Callable[[], T], Callable[[], T]]:
    """Create ``get_settings`` and ``reload_settings`` helpers for a settings class."""

    @lru_cache(maxsize=1)
    def _build() -> T:
        return settings_type()

    def get_settings() -> T:
        return _build()

    def reload_settings() -> T:
        _build.cache_clear()
        return _build()

    return get_settings, reload_settings


def normalize_log_format(value: str, *, env_var: str = "FLIP_LOG_FORMAT") -> str:
    normalized = value.strip().lower()
    if normalized not in ALLOWED_LOG_FORMATS:
        allowed = ", ".join(sorted(ALLOWED_LOG_FORMATS))
        raise ValueError(f"{env_var} must be one of: {allowed}.")
    return normalized


def normalize_log_level(value: str | None, *, env_var: str) -> str | None:
    if value is None:
        return None
    normalized = value.strip().upper()
    if normalized not in ALLOWED_LOG_LEVELS:
        allowed = ", ".join(sorted(ALLOWED_LOG_LEVELS))
        raise ValueError(f"{env_var} must be one of: {allowed}.")
    return normalized


def normalize_schema_versioning(
    value: str, *, env_var: str = "FLIP_SCHEMA_VERSIONING"
) -> str:
    normalized = value.strip().lower()
    if normalized not in ALLOWED_SCHEMA_VERSIONING:
        allowed = ", ".join(sorted(ALLOWED_SCHEMA_VERSIONING))
        raise ValueError(f"{env_var} must be one of: {allowed}.")
    return normalized


class Settings(BaseSettings):
    """Database, schema-versioning and logging settings."""

    model_config = flip_settings_config()

    database_url: str = Field(..., description="SQLAlchemy URL of the target store.")
    database_echo: bool = False
    database_pool_size: int = Field(5, ge=1)
    database_max_overflow: int = Field(10, ge=0)
    database_pool_timeout: int = Field(30, gt=0)
    database_pool_recycle: int = Field(1800, ge=0)
    database_connect_timeout_seconds: int | None = Field(default=10, ge=0)

    schema_versioning: SchemaVersioning = "alembic"

    log_level: str = "INFO"
    log_format: str = "console"
    database_log_level: str | None = None

    @field_validator("schema_versioning", mode="before")
    @classmethod
    def _normalize_schema_versioning(cls, value: object) -> object:
        if value is None:
            return "alembic"
        return normalize_schema_versioning(str(value))

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if value is None:
            return "INFO"
        return normalize_log_level(str(value), env_var="FLIP_LOG_LEVEL")

    @field_validator("database_log_level", mode="before")
    @classmethod
    def _normalize_database_log_level(cls, value: object) -> object:
        if value is None:
            return None
        return normalize_log_level(str(value), env_var="FLIP_DATABASE_LOG_LEVEL")

    @field_validator("log_format", mode="before")
    @classmethod
    def _normalize_log_format(cls, value: object) -> object:
        if value is None:
            return "console"
        return normalize_log_format(str(value))

    @field_validator("database_url", mode="before")
    @classmethod
    def _require_database_url(cls, value: object) -> object:
        if value is None or not str(value).strip():
            raise ValueError("FLIP_DATABASE_URL is required.")
        return value


get_settings, reload_settings = create_settings_accessors(Settings)


__all__ = [
    "ALLOWED_LOG_FORMATS",
    "ALLOWED_LOG_LEVELS",
    "ALLOWED_SCHEMA_VERSIONING",
    "SchemaVersioning",
    "Settings",
    "create_settings_accessors",
    "flip_settings_config",
    "get_settings",
    "normalize_log_format",
    "normalize_log_level",
    "normalize_schema_versioning",
    "reload_settings",
]
