"""Strava token bookkeeping on the athlete profile."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

import httpx
from sqlmodel import Session

from ..core.errors import StravaAuthError
from ..core.time import utcnow
from ..models import Profile
from ..schemas import StravaTokenResponse
from ..strava_client import refresh_access_token

logger = logging.getLogger(__name__)


def store_token(profile: Profile, token: StravaTokenResponse) -> None:
    profile.access_token = token.access_token
    profile.refresh_token = token.refresh_token
    profile.token_expires_at = token.expires_at
    profile.updated_at = utcnow()


def token_is_fresh(profile: Profile, now: datetime, buffer_seconds: int = 0) -> bool:
    if not profile.access_token:
        return False
    if profile.token_expires_at is None:
        return True
    return profile.token_expires_at > int(now.timestamp()) + buffer_seconds


async def ensure_fresh_token(
    session: Session,
    profile: Profile,
    *,
    buffer_seconds: int = 0,
    now: Optional[datetime] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    """Return a usable access token, refreshing and persisting it if needed.

    Raises ``StravaAuthError`` when there is nothing to refresh with or Strava
    rejects the refresh token.
    """

    now = now or utcnow()
    if token_is_fresh(profile, now, buffer_seconds):
        return profile.access_token

    if not profile.refresh_token:
        raise StravaAuthError("No Strava refresh token stored")

    logger.info("Refreshing Strava token for athlete %s", profile.athlete_id)
    refreshed = await refresh_access_token(profile.refresh_token, transport=transport)
    store_token(profile, refreshed)
    session.add(profile)
    session.commit()
    session.refresh(profile)
    return refreshed.access_token


__all__ = ["ensure_fresh_token", "store_token", "token_is_fresh"]
