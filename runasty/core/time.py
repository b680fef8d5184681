"""Time helpers shared by models and services."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Return the current UTC datetime."""

    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from SQLite."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


__all__ = ["as_utc", "isoformat", "utcnow"]
