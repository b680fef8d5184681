"""Health probes and public client configuration."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ...core import BACKEND_URL, check_db_connection
from ...core.config import SYNC_AUTO_COOLDOWN_MINUTES, SYNC_MANUAL_COOLDOWN_MINUTES
from ...services.distances import DISTANCES
from ...services.leadership import CATEGORIES

router = APIRouter(tags=["system"])


@router.get("/health")
def health() -> JSONResponse:
    """Readiness probe; 503 while the database is unreachable."""

    if not check_db_connection():
        return JSONResponse({"ok": False, "database": "unavailable"}, status_code=503)
    return JSONResponse({"ok": True, "database": "ok"})


@router.get("/healthz")
def healthz() -> Dict[str, bool]:
    """Liveness probe that never touches the database."""

    return {"ok": True}


@router.get("/config")
def get_config() -> Dict[str, Any]:
    return {
        "backend_url": BACKEND_URL,
        "distances": [
            {"key": key.value, "meters": spec.meters, "label": spec.label}
            for key, spec in DISTANCES.items()
        ],
        "categories": list(CATEGORIES),
        "sync_cooldown_minutes": {
            "manual": SYNC_MANUAL_COOLDOWN_MINUTES,
            "auto": SYNC_AUTO_COOLDOWN_MINUTES,
        },
    }


__all__ = ["router"]
