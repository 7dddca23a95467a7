from __future__ import annotations

from datetime import datetime, timezone


def utcnow_iso(now: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp as stored on records."""
    return (now or datetime.now(timezone.utc)).isoformat()
