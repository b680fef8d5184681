"""Endpoints for the logged-in athlete's own profile."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlmodel import Session

from ...core import get_session
from ...models import Profile
from ...services.accounts import erase_account, public_profile
from ...services.rankings import athlete_level, athlete_stats
from ..session import SESSION_KEY, current_athlete_id

router = APIRouter(prefix="/api/profile", tags=["profile"])


@router.get("")
def get_profile(
    athlete_id: Optional[int] = Depends(current_athlete_id),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    """Profile (tokens masked) with records, positions and leadership history."""

    if athlete_id is None:
        raise HTTPException(401, "Not connected")
    profile = session.get(Profile, athlete_id)
    if profile is None:
        raise HTTPException(404, "Profile not found")

    stats = athlete_stats(session, athlete_id)
    return {
        "profile": public_profile(profile),
        "distances": stats,
        "level": athlete_level(stats),
    }


@router.get("/level")
def get_profile_level(
    athlete_id: Optional[int] = Depends(current_athlete_id),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    """Ranking tier derived from the athlete's best position."""

    if athlete_id is None:
        raise HTTPException(401, "Not connected")
    return athlete_level(athlete_stats(session, athlete_id))


@router.delete("")
def delete_profile(
    request: Request,
    athlete_id: Optional[int] = Depends(current_athlete_id),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    """Erase the athlete's account and log them out."""

    if athlete_id is None:
        raise HTTPException(401, "Not connected")
    if not erase_account(session, athlete_id):
        raise HTTPException(404, "Profile not found")

    request.session.pop(SESSION_KEY, None)
    return {"ok": True, "deleted_athlete": athlete_id}


__all__ = ["router"]
