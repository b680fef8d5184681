"""Session cookie helpers shared by the routers."""

from __future__ import annotations

from typing import Optional

from fastapi import Request

SESSION_KEY = "athlete_id"


def current_athlete_id(request: Request) -> Optional[int]:
    """FastAPI dependency: the logged-in athlete, or None."""

    raw = request.session.get(SESSION_KEY)
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


__all__ = ["SESSION_KEY", "current_athlete_id"]
