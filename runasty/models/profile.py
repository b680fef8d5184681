"""Database model for connected Strava athletes."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field as ORMField, SQLModel

from ..core.time import utcnow


class Profile(SQLModel, table=True):
    """Athlete profile keyed by Strava athlete id, with its OAuth credentials."""

    __tablename__ = "profile"

    athlete_id: int = ORMField(
        primary_key=True, sa_column_kwargs={"autoincrement": False}
    )
    username: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    sex: Optional[str] = ORMField(default=None, max_length=1)
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_expires_at: Optional[int] = None
    scope: Optional[str] = None
    last_sync_at: Optional[datetime] = None
    created_at: datetime = ORMField(default_factory=utcnow)
    updated_at: datetime = ORMField(default_factory=utcnow)

    @property
    def display_name(self) -> str:
        return self.full_name or self.username or f"Athlete {self.athlete_id}"


__all__ = ["Profile"]
