"""Profile upsert on login and full account erasure."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy import delete
from sqlmodel import Session

from ..core.time import isoformat, utcnow
from ..models import LeadershipInterval, PersonalRecord, Profile
from ..schemas import StravaAthlete, StravaTokenResponse
from .leadership import realign_leaders
from .tokens import store_token

logger = logging.getLogger(__name__)


def upsert_profile(
    session: Session,
    athlete: StravaAthlete,
    token: StravaTokenResponse,
    *,
    scope: Optional[str] = None,
) -> Profile:
    """Create or refresh the profile of an athlete who just logged in."""

    profile = session.get(Profile, athlete.id)
    if profile is None:
        profile = Profile(athlete_id=athlete.id)
        logger.info("New athlete %s connected", athlete.id)

    profile.username = athlete.username
    profile.full_name = athlete.full_name
    profile.avatar_url = athlete.profile or athlete.profile_medium
    profile.sex = athlete.normalized_sex
    profile.scope = scope
    store_token(profile, token)

    session.add(profile)
    session.commit()
    session.refresh(profile)
    return profile


def public_profile(profile: Profile) -> Dict[str, Any]:
    """Profile fields safe to return to the browser; tokens are masked."""

    return {
        "athlete_id": profile.athlete_id,
        "username": profile.username,
        "full_name": profile.full_name,
        "avatar_url": profile.avatar_url,
        "sex": profile.sex,
        "access_token": "***" if profile.access_token else None,
        "refresh_token": "***" if profile.refresh_token else None,
        "token_expires_at": profile.token_expires_at,
        "last_sync_at": isoformat(profile.last_sync_at),
        "created_at": isoformat(profile.created_at),
    }


def erase_account(session: Session, athlete_id: int) -> bool:
    """Delete an athlete's records, leadership history and profile.

    Ledgers the athlete was leading are handed to the next fastest athlete.
    Returns False when there was no such profile.
    """

    profile = session.get(Profile, athlete_id)
    if profile is None:
        return False

    session.exec(delete(LeadershipInterval).where(LeadershipInterval.athlete_id == athlete_id))
    session.exec(delete(PersonalRecord).where(PersonalRecord.athlete_id == athlete_id))
    session.delete(profile)
    session.commit()
    logger.info("Erased account of athlete %s", athlete_id)

    realign_leaders(session, now=utcnow())
    return True


__all__ = ["erase_account", "public_profile", "upsert_profile"]
