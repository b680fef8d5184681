"""
Pydantic models for payloads exchanged with Strava.

Responses are validated here, at the boundary, so the services only ever see
typed objects. Unknown fields are ignored; missing or mistyped required fields
raise ``ValidationError``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _StravaModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class StravaAthlete(_StravaModel):
    id: int
    username: Optional[str] = None
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    sex: Optional[str] = None
    profile: Optional[str] = None
    profile_medium: Optional[str] = None

    @property
    def full_name(self) -> Optional[str]:
        parts = [part for part in (self.firstname, self.lastname) if part]
        return " ".join(parts) or None

    @property
    def normalized_sex(self) -> Optional[str]:
        return self.sex if self.sex in ("M", "F") else None


class StravaActivity(_StravaModel):
    id: int
    name: str = ""
    distance: float = 0.0
    moving_time: int = 0
    elapsed_time: int = 0
    type: str = ""
    sport_type: Optional[str] = None
    start_date: Optional[datetime] = None
    pr_count: int = 0
    achievement_count: int = 0

    @field_validator("pr_count", "achievement_count", "moving_time", "elapsed_time", mode="before")
    @classmethod
    def _none_as_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("distance", mode="before")
    @classmethod
    def _none_distance(cls, value: Any) -> Any:
        return 0.0 if value is None else value

    @property
    def is_run(self) -> bool:
        return self.type == "Run" or self.sport_type == "Run"


class ActivityRef(_StravaModel):
    id: int


class StravaBestEffort(_StravaModel):
    id: Optional[int] = None
    name: str
    elapsed_time: int
    moving_time: Optional[int] = None
    start_date: Optional[datetime] = None
    distance: Optional[float] = None
    pr_rank: Optional[int] = None
    activity: Optional[ActivityRef] = None


class StravaActivityDetail(StravaActivity):
    best_efforts: List[StravaBestEffort] = Field(default_factory=list)

    @field_validator("best_efforts", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class StravaTokenResponse(_StravaModel):
    access_token: str
    refresh_token: str
    expires_at: int
    expires_in: Optional[int] = None
    token_type: Optional[str] = None
    athlete: Optional[StravaAthlete] = None


class WebhookEvent(_StravaModel):
    """Push-subscription event delivered by Strava."""

    object_type: Literal["activity", "athlete"]
    object_id: int
    aspect_type: Literal["create", "update", "delete"]
    owner_id: int
    subscription_id: Optional[int] = None
    event_time: Optional[int] = None
    updates: Dict[str, Any] = Field(default_factory=dict)

    @property
    def triggers_sync(self) -> bool:
        return self.object_type == "activity" and self.aspect_type != "delete"


__all__ = [
    "ActivityRef",
    "StravaActivity",
    "StravaActivityDetail",
    "StravaAthlete",
    "StravaBestEffort",
    "StravaTokenResponse",
    "WebhookEvent",
]
