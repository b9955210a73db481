"""SQLAlchemy Core schema for the feature-flag table."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from sqlalchemy import Boolean, Column, DateTime, String, Table, false, inspect
from sqlalchemy.engine import Connection
from sqlalchemy.types import TypeEngine

from flip_db.metadata import metadata, utc_now
from flip_db.types import UTCDateTime

FEATURES_TABLE = "flip_features"
KEY_LENGTH = 255

# No primary key and no unique constraint on ``key``: uniqueness is left to
# the application.
flip_features = Table(
    FEATURES_TABLE,
    metadata,
    Column("key", String(KEY_LENGTH), nullable=False),
    Column(
        "enabled",
        Boolean(),
        nullable=False,
        server_default=false(),
    ),
    Column("created_at", UTCDateTime(), nullable=False, default=utc_now),
    Column("updated_at", UTCDateTime(), nullable=False, default=utc_now, onupdate=utc_now),
)

REQUIRED_TABLES = [FEATURES_TABLE]


@dataclass(frozen=True, slots=True)
class ExpectedColumn:
    name: str
    type_: type[TypeEngine]
    nullable: bool = False


EXPECTED_COLUMNS: tuple[ExpectedColumn, ...] = (
    ExpectedColumn("key", String),
    ExpectedColumn("enabled", Boolean),
    ExpectedColumn("created_at", DateTime),
    ExpectedColumn("updated_at", DateTime),
)


class SchemaState(StrEnum):
    ABSENT = "absent"
    COMPATIBLE = "compatible"
    INCOMPATIBLE = "incompatible"


@dataclass(frozen=True, slots=True)
class SchemaInspection:
    """Result of comparing the stored feature table with the expected shape."""

    table: str
    state: SchemaState
    differences: list[str] = field(default_factory=list)

    @property
    def exists(self) -> bool:
        return self.state is not SchemaState.ABSENT


def _type_matches(reflected: TypeEngine, expected: type[TypeEngine]) -> bool:
    if isinstance(reflected, expected):
        return True
    # Some dialects reflect booleans as small integers or timestamps as
    # generic types; fall back to the Python type they carry.
    try:
        reflected_python = reflected.python_type
        expected_python = expected().python_type
    except NotImplementedError:
        return False
    return reflected_python is expected_python


def inspect_schema(connection: Connection, *, table: str = FEATURES_TABLE) -> SchemaInspection:
    """Compare the stored ``table`` with the expected four-column shape."""

    inspector = inspect(connection)
    if not inspector.has_table(table):
        return SchemaInspection(table=table, state=SchemaState.ABSENT)

    reflected = {column["name"]: column for column in inspector.get_columns(table)}
    differences: list[str] = []

    for expected in EXPECTED_COLUMNS:
        column = reflected.get(expected.name)
        if column is None:
            differences.append(f"missing column {expected.name}")
            continue
        if not _type_matches(column["type"], expected.type_):
            differences.append(
                f"column {expected.name} has type {column['type']!r}, "
                f"expected {expected.type_.__name__}"
            )
        if bool(column.get("nullable")) != expected.nullable:
            differences.append(f"column {expected.name} nullability differs")

    expected_names = {expected.name for expected in EXPECTED_COLUMNS}
    for name in sorted(set(reflected) - expected_names):
        differences.append(f"unexpected column {name}")

    state = SchemaState.INCOMPATIBLE if differences else SchemaState.COMPATIBLE
    return SchemaInspection(table=table, state=state, differences=differences)


__all__ = [
    "EXPECTED_COLUMNS",
    "FEATURES_TABLE",
    "KEY_LENGTH",
    "REQUIRED_TABLES",
    "ExpectedColumn",
    "SchemaInspection",
    "SchemaState",
    "flip_features",
    "inspect_schema",
    "metadata",
]
