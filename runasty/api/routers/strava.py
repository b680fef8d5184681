"""Strava integration routes: OAuth, manual sync and the push webhook."""

from __future__ import annotations

import logging
import secrets
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlmodel import Session

from ...core import (
    FRONTEND_ORIGIN,
    STRAVA_WEBHOOK_VERIFY_TOKEN,
    StravaAPIError,
    engine,
    get_session,
)
from ...models import Profile
from ...schemas import WebhookEvent
from ...services.accounts import upsert_profile
from ...services.sync import SyncOptions, SyncResult, sync_athlete
from ...strava_client import StravaClient, auth_url, exchange_code_for_token
from ..session import SESSION_KEY, current_athlete_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/strava", tags=["strava"])

_STATE_KEY = "strava_oauth_state"


class SyncRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_auto_sync: bool = Field(default=False, alias="isAutoSync")
    force: bool = False
    full_sync: bool = Field(default=False, alias="fullSync")


def _sync_payload(result: SyncResult) -> Dict[str, Any]:
    return {
        "message": result.message,
        "records": [record.to_dict() for record in result.records],
        "activitiesExamined": result.activities_examined,
        "apiCalls": result.api_calls,
        "failedWrites": result.failed_writes,
        "leadershipErrors": result.leadership_errors,
    }


async def _first_sync(athlete_id: int) -> None:
    """Background sync right after an athlete's first login."""

    with Session(engine) as session:
        result = await sync_athlete(session, athlete_id, SyncOptions(is_auto_sync=True))
    logger.info("First sync for athlete %s: %s", athlete_id, result.message)


@router.get("/auth-url")
def strava_auth_url(request: Request) -> Dict[str, str]:
    state = secrets.token_urlsafe(16)
    request.session[_STATE_KEY] = state
    return {"auth_url": auth_url(state)}


@router.get("/callback")
async def strava_callback(
    request: Request,
    background_tasks: BackgroundTasks,
    code: Optional[str] = None,
    scope: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    session: Session = Depends(get_session),
):
    if error or not code:
        logger.info("Strava authorization declined: %s", error)
        return RedirectResponse(f"{FRONTEND_ORIGIN}/login?error=access_denied")

    expected_state = request.session.pop(_STATE_KEY, None)
    if expected_state is None or not secrets.compare_digest(state or "", expected_state):
        logger.warning("Rejected Strava callback with missing or mismatched state")
        raise HTTPException(400, "Invalid OAuth state")

    try:
        token = await exchange_code_for_token(code)
        athlete = token.athlete
        if athlete is None:
            async with StravaClient(token.access_token) as client:
                athlete = await client.get_athlete()
    except StravaAPIError as exc:
        logger.warning("Strava login failed: %s", exc)
        return RedirectResponse(f"{FRONTEND_ORIGIN}/login?error=strava")

    profile = upsert_profile(session, athlete, token, scope=scope)
    request.session[SESSION_KEY] = profile.athlete_id

    if profile.last_sync_at is None:
        background_tasks.add_task(_first_sync, profile.athlete_id)

    next_url = request.session.pop("next", None) or f"{FRONTEND_ORIGIN}/ranking"
    if not str(next_url).startswith(FRONTEND_ORIGIN):
        next_url = f"{FRONTEND_ORIGIN}/ranking"
    return RedirectResponse(next_url)


@router.get("/disconnect")
def strava_disconnect(request: Request) -> Dict[str, bool]:
    request.session.pop(SESSION_KEY, None)
    return {"ok": True}


@router.post("/sync")
async def strava_sync(
    body: Optional[SyncRequest] = None,
    athlete_id: Optional[int] = Depends(current_athlete_id),
    session: Session = Depends(get_session),
):
    """Sync the logged-in athlete; cooldown skips are successful responses."""

    if athlete_id is None:
        raise HTTPException(401, "Not connected")

    body = body or SyncRequest()
    result = await sync_athlete(
        session,
        athlete_id,
        SyncOptions(
            is_auto_sync=body.is_auto_sync,
            force=body.force,
            full_sync=body.full_sync,
        ),
    )

    if result.skipped:
        return {
            "message": result.message,
            "skipped": True,
            "waitMinutes": result.wait_minutes,
            "apiCalls": result.api_calls,
        }
    if result.auth_required:
        return JSONResponse(
            {"error": result.message, "details": result.error_code}, status_code=401
        )
    if not result.success:
        return JSONResponse(
            {
                "error": result.message,
                "details": result.error_code,
                "apiCalls": result.api_calls,
            },
            status_code=400,
        )
    return _sync_payload(result)


@router.get("/sync")
def strava_sync_get() -> JSONResponse:
    return JSONResponse({"error": "Use POST to sync"}, status_code=405)


@router.get("/webhook")
def strava_webhook_validate(request: Request) -> JSONResponse:
    """Subscription handshake: echo the challenge when the verify token matches."""

    if not STRAVA_WEBHOOK_VERIFY_TOKEN:
        logger.error("STRAVA_WEBHOOK_VERIFY_TOKEN is not configured")
        return JSONResponse({"error": "Webhook not configured"}, status_code=500)

    mode = request.query_params.get("hub.mode")
    token = request.query_params.get("hub.verify_token")
    challenge = request.query_params.get("hub.challenge")

    if mode == "subscribe" and token is not None and secrets.compare_digest(
        token, STRAVA_WEBHOOK_VERIFY_TOKEN
    ):
        return JSONResponse({"hub.challenge": challenge})

    logger.warning("Rejected webhook validation attempt (mode=%s)", mode)
    return JSONResponse({"error": "Forbidden"}, status_code=403)


@router.post("/webhook")
async def strava_webhook_event(
    request: Request, session: Session = Depends(get_session)
) -> Dict[str, Any]:
    """Receive Strava push events. Always 200 so Strava does not redeliver."""

    try:
        event = WebhookEvent.model_validate(await request.json())
    except (ValueError, ValidationError):
        logger.warning("Ignoring malformed webhook payload")
        return {"received": True}

    if not event.triggers_sync:
        return {"received": True}

    if session.get(Profile, event.owner_id) is None:
        return {"received": True}

    try:
        result = await sync_athlete(
            session,
            event.owner_id,
            SyncOptions(is_auto_sync=True, from_webhook=True),
        )
    except Exception:
        logger.exception("Webhook sync crashed for athlete %s", event.owner_id)
        return {"received": True, "error": True}

    logger.info(
        "Webhook sync for athlete %s (%s %s): %s",
        event.owner_id,
        event.aspect_type,
        event.object_id,
        result.message,
    )
    return {"received": True, "synced": result.success}


__all__ = ["router"]
