"""Public ranking and leadership endpoints."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session

from ...core import get_session
from ...models import OVERALL
from ...services.distances import parse_distance
from ...services.leadership import CATEGORIES
from ...services.rankings import current_leaders, ranking

router = APIRouter(prefix="/api", tags=["ranking"])


def _category(sex: str) -> str:
    category = OVERALL if sex in ("", OVERALL) else sex
    if category not in CATEGORIES:
        raise HTTPException(400, "sex must be one of: all, M, F")
    return category


@router.get("/ranking")
def get_ranking(
    distance: str = "5k",
    sex: str = OVERALL,
    limit: int = Query(default=50, ge=1, le=200),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    """Fastest records for one distance."""

    try:
        key = parse_distance(distance)
    except ValueError as exc:
        raise HTTPException(400, str(exc)) from exc

    category = _category(sex)
    return {
        "distance": key.value,
        "sex": category,
        "entries": ranking(session, key, category=category, limit=limit),
    }


@router.get("/leaders")
def get_leaders(
    sex: str = OVERALL, session: Session = Depends(get_session)
) -> Dict[str, Any]:
    """Current leader of every distance and how long they have held it."""

    category = _category(sex)
    return {"sex": category, "leaders": current_leaders(session, category=category)}


__all__ = ["router"]
