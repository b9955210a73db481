"""SQLAlchemy custom column types.

- UTCDateTime: timezone-aware datetimes normalized to UTC.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy.types import DateTime, TypeDecorator

__all__ = ["UTCDateTime"]


def _as_utc(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
    return value


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime normalized to UTC.

    SQLite has no timezone storage, so values read back from it are naive;
    they are re-tagged as UTC here.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect):
        if value is None:
            return None
        return _as_utc(value)

    def process_result_value(self, value: Any, dialect):
        if value is None:
            return None
        return _as_utc(value)

    @property
    def python_type(self) -> type[datetime]:
        return datetime
