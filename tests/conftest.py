"""Shared pytest fixtures for flip-db tests."""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest
from sqlalchemy.engine import Engine

from flip_db.engine import build_engine
from flip_db.settings import Settings, reload_settings


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """Provide a file-backed SQLite database URL for one test."""

    return f"sqlite:///{tmp_path / 'flip.sqlite'}"


@pytest.fixture
def settings(database_url: str) -> Settings:
    return Settings(_env_file=None, database_url=database_url)


@pytest.fixture
def engine(settings: Settings) -> Iterator[Engine]:
    engine = build_engine(settings)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def unreachable_url(tmp_path: Path) -> str:
    """SQLite cannot create files inside a directory that does not exist."""

    return f"sqlite:///{tmp_path / 'missing' / 'nested' / 'flip.sqlite'}"


@pytest.fixture
def flip_env(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    database_url: str,
) -> Iterator[str]:
    """Point the cached settings at the per-test database, ignoring any .env."""

    for var in list(os.environ):
        if var.upper().startswith("FLIP_"):
            monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("FLIP_DATABASE_URL", database_url)
    reload_settings()
    yield database_url
