"""Alembic environment configuration."""

from __future__ import annotations

from logging.config import fileConfig
from typing import Any, TypeGuard

from alembic import context

from flip_db.engine import DatabaseSettings, build_engine, connect
from flip_db.schema import metadata
from flip_db.settings import Settings

# Alembic Config object
config = context.config

# Programmatic callers configure logging themselves and turn this off.
if config.config_file_name is not None and config.attributes.get("configure_logger", True):
    fileConfig(config.config_file_name)

target_metadata = metadata


def _is_database_settings(value: Any) -> TypeGuard[DatabaseSettings]:
    required = (
        "database_url",
        "database_echo",
        "database_pool_size",
        "database_max_overflow",
        "database_pool_timeout",
        "database_pool_recycle",
        "database_connect_timeout_seconds",
    )
    return all(hasattr(value, key) for key in required)


def _build_settings() -> DatabaseSettings:
    provided = config.attributes.get("settings")
    if _is_database_settings(provided):
        return provided
    override_url = config.get_main_option("sqlalchemy.url")
    if override_url:
        override_url = override_url.replace("%%", "%")
        return Settings(_env_file=None, database_url=override_url)
    return Settings()


def run_migrations_online() -> None:
    # apply_schema() hands over the connection it already holds.
    existing_connection = config.attributes.get("connection")
    if existing_connection is not None:
        context.configure(
            connection=existing_connection,
            target_metadata=target_metadata,
        )
        with context.begin_transaction():
            context.run_migrations()
        return

    settings = _build_settings()
    engine = build_engine(settings)
    try:
        with connect(engine) as connection:
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    raise RuntimeError("Offline (--sql) migrations are not supported; run against a live store.")

run_migrations_online()
