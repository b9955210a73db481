"""Query helpers for working with ``flip_features`` rows."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Connection, Row

from flip_db.errors import FeatureFlagNotFoundError
from flip_db.logging import log_context
from flip_db.metadata import utc_now
from flip_db.schema import KEY_LENGTH, flip_features

logger = logging.getLogger(__name__)

_COLUMNS = (
    flip_features.c.key,
    flip_features.c.enabled,
    flip_features.c.created_at,
    flip_features.c.updated_at,
)


@dataclass(frozen=True, slots=True)
class FeatureFlagRecord:
    key: str
    enabled: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Row[Any]) -> FeatureFlagRecord:
        data = row._mapping
        return cls(
            key=data["key"],
            enabled=bool(data["enabled"]),
            created_at=data["created_at"],
            updated_at=data["updated_at"],
        )


def _canonical_key(key: str) -> str:
    return (key or "").strip()


def _require_key(key: str) -> str:
    value = _canonical_key(key)
    if not value:
        raise ValueError("feature flag key must not be blank")
    if len(value) > KEY_LENGTH:
        raise ValueError(f"feature flag key must be at most {KEY_LENGTH} characters")
    return value


class FeatureFlagRepository:
    """Persistence helpers for feature flags.

    Rows are registered and toggled but never deleted here. The table has no
    uniqueness constraint, so registering the same key twice stores two rows;
    lookups return the earliest one and toggles update all of them.
    """

    def __init__(self, connection: Connection) -> None:
        self._conn = connection

    def register(self, key: str, *, enabled: bool | None = None) -> FeatureFlagRecord:
        """Insert a flag row. Omitting ``enabled`` keeps the storage default (false)."""
        now = utc_now()
        values: dict[str, Any] = {
            "key": _require_key(key),
            "created_at": now,
            "updated_at": now,
        }
        if enabled is not None:
            values["enabled"] = enabled

        stmt = insert(flip_features).values(**values).returning(*_COLUMNS)
        row = self._conn.execute(stmt).one()
        record = FeatureFlagRecord.from_row(row)
        logger.info(
            "feature.register",
            extra=log_context(key=record.key, enabled=record.enabled),
        )
        return record

    def get(self, key: str) -> FeatureFlagRecord | None:
        stmt = (
            select(*_COLUMNS)
            .where(flip_features.c.key == _canonical_key(key))
            .order_by(flip_features.c.created_at)
            .limit(1)
        )
        row = self._conn.execute(stmt).first()
        if row is None:
            return None
        return FeatureFlagRecord.from_row(row)

    def is_enabled(self, key: str) -> bool:
        record = self.get(key)
        return record.enabled if record is not None else False

    def set_enabled(self, key: str, enabled: bool) -> FeatureFlagRecord:
        key = _canonical_key(key)
        stmt = (
            update(flip_features)
            .where(flip_features.c.key == key)
            .values(enabled=enabled, updated_at=utc_now())
        )
        result = self._conn.execute(stmt)
        if result.rowcount == 0:
            raise FeatureFlagNotFoundError(key)

        record = self.get(key)
        if record is None:
            raise FeatureFlagNotFoundError(key)
        logger.info(
            "feature.toggle",
            extra=log_context(key=key, enabled=enabled, rows=result.rowcount),
        )
        return record

    def list_all(self) -> list[FeatureFlagRecord]:
        stmt = select(*_COLUMNS).order_by(flip_features.c.key, flip_features.c.created_at)
        return [FeatureFlagRecord.from_row(row) for row in self._conn.execute(stmt)]


__all__ = ["FeatureFlagRecord", "FeatureFlagRepository"]
