"""Registering and toggling feature flag rows."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime

import pytest
from sqlalchemy.engine import Connection, Engine

from flip_db import repository as repository_module
from flip_db.apply import apply_schema
from flip_db.errors import FeatureFlagNotFoundError
from flip_db.repository import FeatureFlagRecord, FeatureFlagRepository
from flip_db.settings import Settings


@pytest.fixture
def conn(engine: Engine, settings: Settings) -> Iterator[Connection]:
    apply_schema(engine, strategy="unversioned", settings=settings)
    with engine.begin() as connection:
        yield connection


@pytest.fixture
def repo(conn: Connection) -> FeatureFlagRepository:
    return FeatureFlagRepository(conn)


def test_register_without_enabled_uses_storage_default(repo: FeatureFlagRepository) -> None:
    record = repo.register("dark_mode")

    assert isinstance(record, FeatureFlagRecord)
    assert record.key == "dark_mode"
    assert record.enabled is False
    assert record.created_at.tzinfo is not None
    assert record.created_at == record.updated_at
    assert repo.get("dark_mode") == record


def test_register_with_explicit_state(repo: FeatureFlagRepository) -> None:
    record = repo.register("beta_checkout", enabled=True)

    assert record.enabled is True
    assert repo.is_enabled("beta_checkout") is True


def test_register_strips_and_rejects_blank_keys(repo: FeatureFlagRepository) -> None:
    assert repo.register("  search_v2 ").key == "search_v2"

    with pytest.raises(ValueError, match="blank"):
        repo.register("   ")
    with pytest.raises(ValueError, match="at most 255"):
        repo.register("x" * 256)


def test_set_enabled_toggles_and_refreshes_updated_at(
    repo: FeatureFlagRepository, monkeypatch: pytest.MonkeyPatch
) -> None:
    registered_at = datetime(2026, 10, 19, 8, 0, tzinfo=UTC)
    toggled_at = datetime(2026, 10, 19, 9, 30, tzinfo=UTC)
    disabled_at = datetime(2026, 10, 19, 10, 0, tzinfo=UTC)
    clock = iter([registered_at, toggled_at, disabled_at])
    monkeypatch.setattr(repository_module, "utc_now", lambda: next(clock))

    repo.register("dark_mode")
    record = repo.set_enabled("dark_mode", True)

    assert record.enabled is True
    assert record.created_at == registered_at
    assert record.updated_at == toggled_at
    assert repo.is_enabled("dark_mode") is True

    disabled = repo.set_enabled("dark_mode", False)
    assert disabled.enabled is False
    assert disabled.updated_at == disabled_at


def test_set_enabled_unknown_key_raises(repo: FeatureFlagRepository) -> None:
    with pytest.raises(FeatureFlagNotFoundError) as excinfo:
        repo.set_enabled("missing", True)

    assert excinfo.value.key == "missing"
    assert isinstance(excinfo.value, LookupError)


def test_missing_flag_reads_as_disabled(repo: FeatureFlagRepository) -> None:
    assert repo.get("missing") is None
    assert repo.is_enabled("missing") is False


def test_duplicate_keys_are_stored_and_toggled_together(repo: FeatureFlagRepository) -> None:
    repo.register("dark_mode")
    repo.register("dark_mode")

    repo.set_enabled("dark_mode", True)

    rows = [record for record in repo.list_all() if record.key == "dark_mode"]
    assert len(rows) == 2
    assert all(record.enabled for record in rows)


def test_list_all_orders_by_key(repo: FeatureFlagRepository) -> None:
    repo.register("zeta")
    repo.register("alpha", enabled=True)
    repo.register("mu")

    assert [record.key for record in repo.list_all()] == ["alpha", "mu", "zeta"]


def test_lookups_strip_keys_like_register(repo: FeatureFlagRepository) -> None:
    repo.register(" dark_mode ")

    assert repo.get(" dark_mode ") is not None
    assert repo.is_enabled(" dark_mode ") is False
    assert repo.set_enabled(" dark_mode ", True).enabled is True
    assert repo.get("dark_mode").enabled is True
