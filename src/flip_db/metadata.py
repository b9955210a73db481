"""Shared SQLAlchemy metadata for the feature-flag schema."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import MetaData

# Naming convention (helps Alembic + keeps constraints consistent)
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTION)


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


__all__ = ["metadata", "NAMING_CONVENTION", "utc_now"]
