"""Database engine helpers (PostgreSQL and SQLite)."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Protocol

from sqlalchemy import create_engine, exc, inspect
from sqlalchemy.engine import URL, Connection, Engine, make_url
from sqlalchemy.pool import NullPool, StaticPool

from flip_db.errors import StoreUnavailable


class DatabaseSettings(Protocol):
    database_url: str
    database_echo: bool
    database_pool_size: int
    database_max_overflow: int
    database_pool_timeout: int
    database_pool_recycle: int
    database_connect_timeout_seconds: int | None


def is_sqlite_memory_url(url: URL) -> bool:
    database = (url.database or "").strip()
    if not database or database == ":memory:":
        return True
    if database.startswith("file:"):
        query = dict(url.query or {})
        if query.get("mode") == "memory":
            return True
    return False


def normalize_postgres_url(url: URL, settings: DatabaseSettings) -> URL:
    """Force the psycopg driver and apply the connect timeout."""

    if url.drivername in {"postgresql", "postgres"}:
        url = url.set(drivername="postgresql+psycopg")
    if not url.drivername.startswith("postgresql+psycopg"):
        raise ValueError("For Postgres, use postgresql+psycopg://... (psycopg is required).")

    if settings.database_connect_timeout_seconds is not None:
        query = dict(url.query or {})
        query["connect_timeout"] = str(int(settings.database_connect_timeout_seconds))
        url = url.set(query=query)
    return url


def _create_postgres_engine(url: URL, settings: DatabaseSettings) -> Engine:
    url = normalize_postgres_url(url, settings)
    return create_engine(
        url,
        echo=settings.database_echo,
        pool_pre_ping=True,
        pool_use_lifo=True,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_timeout=settings.database_pool_timeout,
        pool_recycle=settings.database_pool_recycle,
    )


def _create_sqlite_engine(url: URL, settings: DatabaseSettings) -> Engine:
    connect_args: dict[str, Any] = {"check_same_thread": False}
    if settings.database_connect_timeout_seconds is not None:
        connect_args["timeout"] = settings.database_connect_timeout_seconds

    engine_kwargs: dict[str, Any] = {
        "echo": settings.database_echo,
        "connect_args": connect_args,
    }
    if is_sqlite_memory_url(url):
        engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs["poolclass"] = NullPool

    return create_engine(url, **engine_kwargs)


def build_engine(settings: DatabaseSettings) -> Engine:
    if not settings.database_url:
        raise ValueError("Settings.database_url is required.")
    url = make_url(str(settings.database_url))
    backend = url.get_backend_name()

    if backend == "postgresql":
        return _create_postgres_engine(url, settings)
    if backend == "sqlite":
        return _create_sqlite_engine(url, settings)
    raise ValueError(
        "Unsupported database backend. Use postgresql+psycopg:// or sqlite://."
    )


@contextmanager
def connect(engine: Engine, *, begin: bool = False) -> Iterator[Connection]:
    """Open a connection, raising ``StoreUnavailable`` when that fails.

    Only the act of connecting is translated; errors raised by statements run
    on the yielded connection propagate unchanged.
    """

    try:
        conn = engine.connect()
    except (exc.OperationalError, exc.InterfaceError) as err:
        raise StoreUnavailable(
            engine.url.render_as_string(hide_password=True),
            reason=str(err.orig) if err.orig is not None else None,
        ) from err

    with conn:
        if begin:
            with conn.begin():
                yield conn
        else:
            yield conn


def assert_tables_exist(
    engine: Engine,
    required_tables: list[str],
    *,
    schema: str | None = None,
) -> None:
    """Raise if required tables are missing."""
    with connect(engine) as conn:
        inspector = inspect(conn)
        missing = [t for t in required_tables if not inspector.has_table(t, schema=schema)]
    if missing:
        raise RuntimeError(
            f"Missing required tables: {', '.join(missing)}. "
            "Run `flip-db apply` first."
        )


__all__ = [
    "DatabaseSettings",
    "assert_tables_exist",
    "build_engine",
    "connect",
    "is_sqlite_memory_url",
    "normalize_postgres_url",
]
