"""Apply, revert and verify the feature-flag table on a relational store.

``apply_schema`` is one-shot: a second application against a
store that already holds ``flip_features`` raises :class:`SchemaConflict`
instead of silently succeeding. Use ``revert_schema`` first to re-apply.

Two schema-versioning strategies are supported and are chosen explicitly:

``alembic``
    The table is created by the ``0001_create_flip_features`` Alembic
    revision and the store records it in ``alembic_version``.
``unversioned``
    The table is created straight from the SQLAlchemy metadata and nothing
    else is written.
"""

from __future__ import annotations

import logging

from alembic import command
from alembic.util import CommandError
from sqlalchemy.engine import Connection, Engine

from flip_db.engine import connect
from flip_db.errors import SchemaConflict
from flip_db.logging import log_context
from flip_db.migrations_runner import BASE_REVISION, HEAD_REVISION, alembic_config
from flip_db.schema import (
    FEATURES_TABLE,
    SchemaInspection,
    SchemaState,
    flip_features,
    inspect_schema,
)
from flip_db.settings import SchemaVersioning, Settings, normalize_schema_versioning

logger = logging.getLogger(__name__)

__all__ = ["apply_schema", "revert_schema", "verify_schema"]


def _resolve_settings(engine: Engine, settings: Settings | None) -> Settings:
    if settings is not None:
        return settings
    return Settings(
        _env_file=None,
        database_url=engine.url.render_as_string(hide_password=False),
    )


def _resolve_strategy(strategy: str | None, settings: Settings) -> SchemaVersioning:
    if strategy is None:
        return settings.schema_versioning
    return normalize_schema_versioning(strategy, env_var="strategy")  # type: ignore[return-value]


def _create_table(conn: Connection, strategy: SchemaVersioning, settings: Settings) -> None:
    if strategy == "alembic":
        with alembic_config(settings, connection=conn) as cfg:
            try:
                command.upgrade(cfg, HEAD_REVISION)
            except CommandError as exc:
                raise SchemaConflict(
                    FEATURES_TABLE,
                    f"alembic_version cannot be upgraded to {HEAD_REVISION}",
                    differences=[str(exc)],
                ) from exc
    else:
        flip_features.create(conn)


def _drop_table(conn: Connection, strategy: SchemaVersioning, settings: Settings) -> None:
    if strategy == "alembic":
        with alembic_config(settings, connection=conn) as cfg:
            try:
                command.downgrade(cfg, BASE_REVISION)
            except CommandError as exc:
                raise SchemaConflict(
                    FEATURES_TABLE,
                    f"alembic_version cannot be downgraded to {BASE_REVISION}",
                    differences=[str(exc)],
                ) from exc
    else:
        flip_features.drop(conn)


def apply_schema(
    engine: Engine,
    *,
    strategy: str | None = None,
    settings: Settings | None = None,
) -> None:
    """Create ``flip_features`` on the store behind ``engine``.

    Raises:
        StoreUnavailable: the store cannot be reached.
        SchemaConflict: the table already exists (any shape), or the chosen
            strategy did not leave a compatible table behind.
    """
    resolved = _resolve_settings(engine, settings)
    chosen = _resolve_strategy(strategy, resolved)
    ctx = log_context(table=FEATURES_TABLE, strategy=chosen)
    logger.info("schema.apply.start", extra=ctx)

    with connect(engine, begin=True) as conn:
        existing = inspect_schema(conn)
        if existing.state is SchemaState.COMPATIBLE:
            raise SchemaConflict(FEATURES_TABLE, f"table {FEATURES_TABLE} already exists")
        if existing.state is SchemaState.INCOMPATIBLE:
            raise SchemaConflict(
                FEATURES_TABLE,
                f"table {FEATURES_TABLE} already exists with a different shape",
                differences=existing.differences,
            )

        _create_table(conn, chosen, resolved)

        created = inspect_schema(conn)
        if created.state is SchemaState.ABSENT:
            # Alembic skipped the revision: alembic_version is already stamped.
            raise SchemaConflict(
                FEATURES_TABLE,
                f"alembic_version is already at {HEAD_REVISION} but {FEATURES_TABLE} is missing",
            )
        if created.state is SchemaState.INCOMPATIBLE:
            raise SchemaConflict(
                FEATURES_TABLE,
                f"table {FEATURES_TABLE} was created with an unexpected shape",
                differences=created.differences,
            )

    logger.info("schema.apply.success", extra=ctx)


def revert_schema(
    engine: Engine,
    *,
    strategy: str | None = None,
    settings: Settings | None = None,
) -> None:
    """Drop ``flip_features`` (the reversal step of :func:`apply_schema`)."""
    resolved = _resolve_settings(engine, settings)
    chosen = _resolve_strategy(strategy, resolved)
    ctx = log_context(table=FEATURES_TABLE, strategy=chosen)
    logger.info("schema.revert.start", extra=ctx)

    with connect(engine, begin=True) as conn:
        if not inspect_schema(conn).exists:
            raise SchemaConflict(
                FEATURES_TABLE,
                f"table {FEATURES_TABLE} does not exist; nothing to revert",
            )

        _drop_table(conn, chosen, resolved)

        if inspect_schema(conn).exists:
            raise SchemaConflict(
                FEATURES_TABLE,
                f"table {FEATURES_TABLE} is not recorded in alembic_version; "
                "revert it with the unversioned strategy",
            )

    logger.info("schema.revert.success", extra=ctx)


def verify_schema(engine: Engine) -> SchemaInspection:
    """Raise ``SchemaConflict`` unless ``flip_features`` exists with the expected shape."""
    with connect(engine) as conn:
        inspection = inspect_schema(conn)

    if inspection.state is SchemaState.ABSENT:
        raise SchemaConflict(FEATURES_TABLE, f"table {FEATURES_TABLE} does not exist")
    if inspection.state is SchemaState.INCOMPATIBLE:
        raise SchemaConflict(
            FEATURES_TABLE,
            f"table {FEATURES_TABLE} has a different shape",
            differences=inspection.differences,
        )
    logger.debug("schema.verify.success", extra=log_context(table=FEATURES_TABLE))
    return inspection
