"""Collection snapshots table for the "sql" record store.

Revision: 001_collection_snapshots
Created:  2026-10-18

One row per record collection ("users", "groups"). The whole collection is a
single JSON document; `version` is bumped on every save and checked by the
store to reject stale writes.

Append-only: this file must never be edited after it has been applied to any
database. Schema changes go into a NEW migration file.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_collection_snapshots"
down_revision: str | None = None      # first migration, no parent
branch_labels: tuple | None = None
depends_on: tuple | None = None


def upgrade() -> None:
    op.create_table(
        "collection_snapshots",
        sa.Column("name", sa.String(length=32), primary_key=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("records", sa.JSON(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )


def downgrade() -> None:
    op.drop_table("collection_snapshots")
