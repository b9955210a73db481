"""Programmatic Alembic runner for the feature-flag migrations."""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager, suppress
from importlib import resources
from pathlib import Path
from typing import Iterator

from alembic import command
from alembic.config import Config
from sqlalchemy import text
from sqlalchemy.engine import Connection

from flip_db.engine import build_engine, connect
from flip_db.logging import log_context
from flip_db.settings import Settings, get_settings

__all__ = [
    "BASE_REVISION",
    "HEAD_REVISION",
    "alembic_config",
    "downgrade_migrations",
    "migration_lock",
    "run_migrations",
]

logger = logging.getLogger(__name__)

HEAD_REVISION = "0001_create_flip_features"
BASE_REVISION = "base"
MIGRATION_LOCK_KEY = 0xF11BF1A6  # stable Postgres advisory lock key.


def _alembic_resource_paths() -> tuple[Path, Path]:
    package = resources.files("flip_db")
    alembic_ini = package / "alembic.ini"
    migrations_dir = package / "migrations"
    return alembic_ini, migrations_dir


@contextmanager
def migration_lock(settings: Settings) -> Iterator[None]:
    """Serialize concurrent migrators on Postgres; a no-op elsewhere."""
    engine = build_engine(settings)
    try:
        if engine.dialect.name != "postgresql":
            yield
            return
        with connect(engine) as base_conn:
            conn = base_conn.execution_options(isolation_level="AUTOCOMMIT")
            conn.execute(text("SELECT pg_advisory_lock(:key)"), {"key": MIGRATION_LOCK_KEY})
            try:
                yield
            finally:
                with suppress(Exception):
                    conn.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": MIGRATION_LOCK_KEY})
    finally:
        engine.dispose()


@contextmanager
def alembic_config(
    settings: Settings | None = None,
    *,
    connection: Connection | None = None,
) -> Iterator[Config]:
    alembic_ini_ref, migrations_ref = _alembic_resource_paths()
    with resources.as_file(alembic_ini_ref) as alembic_ini, resources.as_file(
        migrations_ref
    ) as migrations_dir:
        if not alembic_ini.exists():
            raise FileNotFoundError(f"Alembic config not found at {alembic_ini}")
        if not migrations_dir.exists():
            raise FileNotFoundError(f"Alembic migrations not found at {migrations_dir}")

        # Config binds sys.stdout at import time by default; use the current stream.
        alembic_cfg = Config(str(alembic_ini), stdout=sys.stdout)
        alembic_cfg.set_main_option("script_location", str(migrations_dir))
        # Process logging belongs to setup_logging(), not alembic.ini.
        alembic_cfg.attributes["configure_logger"] = False
        resolved = settings or get_settings()
        if not resolved.database_url:
            raise ValueError("Settings.database_url is required.")
        alembic_cfg.attributes["settings"] = resolved
        if connection is not None:
            alembic_cfg.attributes["connection"] = connection
        # ConfigParser treats % as interpolation; escape to preserve URL encoding.
        safe_url = str(resolved.database_url).replace("%", "%%")
        alembic_cfg.set_main_option("sqlalchemy.url", safe_url)
        yield alembic_cfg


def run_migrations(settings: Settings | None = None, *, revision: str = "head") -> None:
    resolved = settings or get_settings()
    logger.info("migrations.upgrade.start", extra=log_context(revision=revision))
    with migration_lock(resolved):
        with alembic_config(resolved) as alembic_cfg:
            command.upgrade(alembic_cfg, revision)
    logger.info("migrations.upgrade.success", extra=log_context(revision=revision))


def downgrade_migrations(
    settings: Settings | None = None,
    *,
    revision: str = BASE_REVISION,
) -> None:
    resolved = settings or get_settings()
    logger.info("migrations.downgrade.start", extra=log_context(revision=revision))
    with migration_lock(resolved):
        with alembic_config(resolved) as alembic_cfg:
            command.downgrade(alembic_cfg, revision)
    logger.info("migrations.downgrade.success", extra=log_context(revision=revision))
