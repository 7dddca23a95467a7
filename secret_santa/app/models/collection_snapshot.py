"""
models/collection_snapshot.py — Table backing the "sql" record store.

One row per record collection ("users", "groups"). The whole collection is
stored as a single JSON document so a save is one atomic row update.
No business logic. No imports from services or routes.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from secret_santa.app.extensions import db


class CollectionSnapshot(db.Model):
    __tablename__ = "collection_snapshots"

    name: Mapped[str] = mapped_column(String(32), primary_key=True)

    # Bumped on every save; compared on save to detect concurrent writers.
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    records: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<CollectionSnapshot name={self.name!r} version={self.version}>"
