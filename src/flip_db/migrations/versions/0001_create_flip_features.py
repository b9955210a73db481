"""Create the flip_features table."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

from flip_db.types import UTCDateTime

# Revision identifiers, used by Alembic.
revision = "0001_create_flip_features"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def upgrade() -> None:
    op.create_table(
        "flip_features",
        sa.Column("key", sa.String(length=255), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("flip_features")
