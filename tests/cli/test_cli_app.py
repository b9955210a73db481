from __future__ import annotations

import pytest
from sqlalchemy import inspect
from typer.testing import CliRunner

from flip_db import cli
from flip_db.cli import app
from flip_db.engine import build_engine
from flip_db.settings import get_settings, reload_settings

runner = CliRunner()


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "setup_logging", lambda settings: None)


def _table_names() -> list[str]:
    engine = build_engine(get_settings())
    try:
        return inspect(engine).get_table_names()
    finally:
        engine.dispose()


def test_no_command_prints_help(flip_env: str) -> None:
    result = runner.invoke(app, [])

    assert result.exit_code == 0
    assert "apply" in result.output
    assert "flags" in result.output


def test_apply_creates_table(flip_env: str) -> None:
    result = runner.invoke(app, ["apply"])

    assert result.exit_code == 0, result.output
    assert "created flip_features" in result.output
    assert set(_table_names()) == {"alembic_version", "flip_features"}


def test_apply_honours_strategy_option(flip_env: str) -> None:
    result = runner.invoke(app, ["apply", "--strategy", "unversioned"])

    assert result.exit_code == 0, result.output
    assert _table_names() == ["flip_features"]


def test_apply_twice_exits_with_schema_conflict(flip_env: str) -> None:
    assert runner.invoke(app, ["apply"]).exit_code == 0

    result = runner.invoke(app, ["apply"])

    assert result.exit_code == cli.EXIT_SCHEMA_CONFLICT
    assert "error: table flip_features already exists" in result.output


def test_apply_unreachable_store_exits_with_store_unavailable(
    flip_env: str, unreachable_url: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("FLIP_DATABASE_URL", unreachable_url)
    reload_settings()

    result = runner.invoke(app, ["apply"])

    assert result.exit_code == cli.EXIT_STORE_UNAVAILABLE
    assert "error: store unavailable" in result.output


def test_revert_requires_confirmation(flip_env: str) -> None:
    runner.invoke(app, ["apply"])

    result = runner.invoke(app, ["revert"])

    assert result.exit_code == 1
    assert "revert requires --yes" in result.output
    assert "flip_features" in _table_names()


def test_revert_drops_table(flip_env: str) -> None:
    runner.invoke(app, ["apply"])

    result = runner.invoke(app, ["revert", "--yes"])

    assert result.exit_code == 0, result.output
    assert "flip_features" not in _table_names()


def test_verify_reports_state(flip_env: str) -> None:
    missing = runner.invoke(app, ["verify"])
    assert missing.exit_code == cli.EXIT_SCHEMA_CONFLICT

    runner.invoke(app, ["apply"])
    result = runner.invoke(app, ["verify"])

    assert result.exit_code == 0, result.output
    assert "flip_features: compatible" in result.output


def test_migrate_runs_alembic_upgrade(flip_env: str) -> None:
    result = runner.invoke(app, ["migrate"])

    assert result.exit_code == 0, result.output
    assert "flip_features" in _table_names()


def test_flags_lifecycle(flip_env: str) -> None:
    runner.invoke(app, ["apply"])

    registered = runner.invoke(app, ["flags", "register", "dark_mode"])
    assert registered.exit_code == 0, registered.output
    assert registered.output.startswith("dark_mode\tdisabled\t")

    enabled = runner.invoke(app, ["flags", "enable", "dark_mode"])
    assert enabled.exit_code == 0, enabled.output
    assert enabled.output.startswith("dark_mode\tenabled\t")

    runner.invoke(app, ["flags", "register", "beta", "--enabled"])
    listed = runner.invoke(app, ["flags", "list"])
    assert listed.exit_code == 0, listed.output
    lines = listed.output.splitlines()
    assert [line.split("\t")[:2] for line in lines] == [
        ["beta", "enabled"],
        ["dark_mode", "enabled"],
    ]

    disabled = runner.invoke(app, ["flags", "disable", "dark_mode"])
    assert disabled.output.startswith("dark_mode\tdisabled\t")


def test_flags_toggle_unknown_key(flip_env: str) -> None:
    runner.invoke(app, ["apply"])

    result = runner.invoke(app, ["flags", "enable", "missing"])

    assert result.exit_code == cli.EXIT_NOT_FOUND
    assert "feature flag not found: missing" in result.output


def test_flags_register_rejects_blank_key(flip_env: str) -> None:
    runner.invoke(app, ["apply"])

    result = runner.invoke(app, ["flags", "register", "  "])

    assert result.exit_code == 1
    assert "must not be blank" in result.output


def test_flags_without_table(flip_env: str) -> None:
    result = runner.invoke(app, ["flags", "list"])

    assert result.exit_code == cli.EXIT_SCHEMA_CONFLICT
    assert "Missing required tables: flip_features" in result.output


def test_migrate_unreachable_store_exits_with_store_unavailable(
    flip_env: str, unreachable_url: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("FLIP_DATABASE_URL", unreachable_url)
    reload_settings()

    result = runner.invoke(app, ["migrate"])

    assert result.exit_code == cli.EXIT_STORE_UNAVAILABLE
    assert "error: store unavailable" in result.output


def test_stamp_then_current_reports_head(flip_env: str) -> None:
    stamped = runner.invoke(app, ["stamp", "head"])
    assert stamped.exit_code == 0, stamped.output

    result = runner.invoke(app, ["current"])

    assert result.exit_code == 0, result.output
    assert "0001_create_flip_features" in result.output
    assert "flip_features" not in _table_names()


def test_history_lists_revisions(flip_env: str) -> None:
    result = runner.invoke(app, ["history"])

    assert result.exit_code == 0, result.output
    assert "0001_create_flip_features" in result.output


def test_stamp_unknown_revision_exits_with_schema_conflict(flip_env: str) -> None:
    result = runner.invoke(app, ["stamp", "ffffdeadbeef"])

    assert result.exit_code == cli.EXIT_SCHEMA_CONFLICT
    assert "error:" in result.output


def test_stamp_unreachable_store_exits_with_store_unavailable(
    flip_env: str, unreachable_url: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("FLIP_DATABASE_URL", unreachable_url)
    reload_settings()

    result = runner.invoke(app, ["stamp", "head"])

    assert result.exit_code == cli.EXIT_STORE_UNAVAILABLE


def test_flags_enable_strips_key(flip_env: str) -> None:
    runner.invoke(app, ["apply"])
    runner.invoke(app, ["flags", "register", " beta "])

    result = runner.invoke(app, ["flags", "enable", " beta "])

    assert result.exit_code == 0, result.output
    assert result.output.startswith("beta\tenabled")
