"""Database model for leadership history."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Index, text
from sqlmodel import Field as ORMField, SQLModel

from ..core.time import utcnow

OVERALL = "all"


class LeadershipInterval(SQLModel, table=True):
    """Span during which one athlete held the best time for a distance.

    ``ended_at`` is null while the interval is open. ``category`` is ``"all"``
    for the overall ledger or a sex code for the per-sex ledgers; it is never
    null so the partial unique index below covers every ledger.
    """

    __tablename__ = "leadership_interval"
    __table_args__ = (
        Index(
            "ux_leadership_open",
            "distance",
            "category",
            unique=True,
            sqlite_where=text("ended_at IS NULL"),
            postgresql_where=text("ended_at IS NULL"),
        ),
    )

    id: Optional[int] = ORMField(default=None, primary_key=True)
    athlete_id: int = ORMField(index=True, foreign_key="profile.athlete_id")
    distance: str = ORMField(index=True, max_length=8)
    category: str = ORMField(default=OVERALL, max_length=8)
    started_at: datetime = ORMField(default_factory=utcnow)
    ended_at: Optional[datetime] = None
    record_time_seconds: int


__all__ = ["LeadershipInterval", "OVERALL"]
