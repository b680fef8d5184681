"""Database model for personal-best records."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, UniqueConstraint
from sqlmodel import Field as ORMField, SQLModel

from ..core.time import utcnow


class PersonalRecord(SQLModel, table=True):
    """Fastest known time for one athlete at one target distance."""

    __tablename__ = "personal_record"
    __table_args__ = (
        UniqueConstraint("athlete_id", "distance", name="uq_record_athlete_distance"),
    )

    id: Optional[int] = ORMField(default=None, primary_key=True)
    athlete_id: int = ORMField(index=True, foreign_key="profile.athlete_id")
    distance: str = ORMField(index=True, max_length=8)
    time_seconds: int
    achieved_at: Optional[datetime] = None
    activity_id: Optional[int] = ORMField(default=None, sa_type=BigInteger)
    created_at: datetime = ORMField(default_factory=utcnow)
    updated_at: datetime = ORMField(default_factory=utcnow)


__all__ = ["PersonalRecord"]
