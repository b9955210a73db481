"""flip-db: CLI for the feature-flag table and its migrations."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import typer
from alembic import command
from alembic.util import CommandError
from sqlalchemy.engine import Connection

from flip_db.apply import apply_schema, revert_schema, verify_schema
from flip_db.engine import assert_tables_exist, build_engine, connect
from flip_db.errors import FeatureFlagNotFoundError, SchemaConflict, StoreUnavailable
from flip_db.logging import setup_logging
from flip_db.migrations_runner import alembic_config, run_migrations
from flip_db.repository import FeatureFlagRecord, FeatureFlagRepository
from flip_db.schema import FEATURES_TABLE, REQUIRED_TABLES
from flip_db.settings import Settings, get_settings

EXIT_SCHEMA_CONFLICT = 2
EXIT_STORE_UNAVAILABLE = 3
EXIT_NOT_FOUND = 4

app = typer.Typer(
    add_completion=False,
    invoke_without_command=True,
    help="flip-db CLI (apply, revert, verify, migrate, history, current, stamp, flags).",
)
flags_app = typer.Typer(add_completion=False, help="Inspect and toggle feature flags.")
app.add_typer(flags_app, name="flags")

StrategyOption = typer.Option(
    None,
    "--strategy",
    help="Schema-versioning strategy: alembic or unversioned (default: FLIP_SCHEMA_VERSIONING).",
)


def _settings() -> Settings:
    settings = get_settings()
    setup_logging(settings)
    return settings


def _fail(message: str, code: int) -> typer.Exit:
    typer.echo(f"error: {message}", err=True)
    return typer.Exit(code=code)


@contextmanager
def _handle_store_errors() -> Iterator[None]:
    try:
        yield
    except SchemaConflict as exc:
        raise _fail(str(exc), EXIT_SCHEMA_CONFLICT) from exc
    except StoreUnavailable as exc:
        raise _fail(str(exc), EXIT_STORE_UNAVAILABLE) from exc
    except FeatureFlagNotFoundError as exc:
        raise _fail(str(exc), EXIT_NOT_FOUND) from exc
    except CommandError as exc:
        raise _fail(str(exc), EXIT_SCHEMA_CONFLICT) from exc


@contextmanager
def _flag_repository() -> Iterator[FeatureFlagRepository]:
    engine = build_engine(_settings())
    try:
        with _handle_store_errors():
            try:
                assert_tables_exist(engine, REQUIRED_TABLES)
            except RuntimeError as exc:
                raise _fail(str(exc), EXIT_SCHEMA_CONFLICT) from exc
            with connect(engine, begin=True) as conn:
                yield FeatureFlagRepository(conn)
    finally:
        engine.dispose()


def _echo_record(record: FeatureFlagRecord) -> None:
    state = "enabled" if record.enabled else "disabled"
    typer.echo(f"{record.key}\t{state}\t{record.updated_at.isoformat()}")


@app.callback()
def _main(ctx: typer.Context) -> None:
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


@app.command(name="apply", help=f"Create the {FEATURES_TABLE} table (fails if it exists).")
def apply(strategy: str | None = StrategyOption) -> None:
    settings = _settings()
    engine = build_engine(settings)
    try:
        with _handle_store_errors():
            apply_schema(engine, strategy=strategy, settings=settings)
    finally:
        engine.dispose()
    typer.echo(f"created {FEATURES_TABLE}")


@app.command(name="revert", help=f"Drop the {FEATURES_TABLE} table.")
def revert(
    strategy: str | None = StrategyOption,
    yes: bool = typer.Option(False, "--yes", help="Confirm destructive revert."),
) -> None:
    if not yes:
        raise _fail("revert requires --yes", 1)

    settings = _settings()
    engine = build_engine(settings)
    try:
        with _handle_store_errors():
            revert_schema(engine, strategy=strategy, settings=settings)
    finally:
        engine.dispose()
    typer.echo(f"dropped {FEATURES_TABLE}")


@app.command(name="verify", help=f"Check that {FEATURES_TABLE} exists with the expected shape.")
def verify() -> None:
    engine = build_engine(_settings())
    try:
        with _handle_store_errors():
            inspection = verify_schema(engine)
    finally:
        engine.dispose()
    typer.echo(f"{inspection.table}: {inspection.state}")


@app.command(name="migrate", help="Apply Alembic migrations (upgrade head).")
def migrate(
    revision: str = typer.Argument("head", help="Alembic revision to upgrade to."),
) -> None:
    with _handle_store_errors():
        run_migrations(_settings(), revision=revision)


@app.command(name="history", help="Show migration history.")
def history(
    rev_range: str | None = typer.Argument(None, help="Revision range (optional)."),
    verbose: bool = typer.Option(False, "--verbose", help="Verbose output."),
) -> None:
    with _handle_store_errors(), alembic_config(_settings()) as cfg:
        command.history(cfg, rev_range, verbose=verbose)


@app.command(name="current", help="Show current database revision.")
def current(
    verbose: bool = typer.Option(False, "--verbose", help="Verbose output."),
) -> None:
    with _handle_store_errors(), alembic_config(_settings()) as cfg:
        command.current(cfg, verbose=verbose)


@app.command(name="stamp", help="Stamp revision without running migrations.")
def stamp(
    revision: str = typer.Argument(..., help="Alembic revision to stamp."),
) -> None:
    with _handle_store_errors(), alembic_config(_settings()) as cfg:
        command.stamp(cfg, revision)


@flags_app.command(name="list", help="List stored feature flags.")
def list_flags() -> None:
    with _flag_repository() as repo:
        records = repo.list_all()
    for record in records:
        _echo_record(record)


@flags_app.command(name="register", help="Register a feature flag.")
def register_flag(
    key: str = typer.Argument(..., help="Feature flag key."),
    enabled: bool | None = typer.Option(
        None,
        "--enabled/--disabled",
        help="Initial state (default: the table default, disabled).",
    ),
) -> None:
    with _flag_repository() as repo:
        try:
            record = repo.register(key, enabled=enabled)
        except ValueError as exc:
            raise _fail(str(exc), 1) from exc
    _echo_record(record)


def _toggle(key: str, enabled: bool) -> None:
    with _flag_repository() as repo:
        record = repo.set_enabled(key, enabled)
    _echo_record(record)


@flags_app.command(name="enable", help="Enable a feature flag.")
def enable_flag(key: str = typer.Argument(..., help="Feature flag key.")) -> None:
    _toggle(key, True)


@flags_app.command(name="disable", help="Disable a feature flag.")
def disable_flag(key: str = typer.Argument(..., help="Feature flag key.")) -> None:
    _toggle(key, False)


if __name__ == "__main__":
    app()
