"""
Strava API Client
OAuth token exchange and the read-only endpoints used by the sync.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlencode

import httpx
from pydantic import TypeAdapter, ValidationError

from .core.config import STRAVA_CLIENT_ID, STRAVA_CLIENT_SECRET, STRAVA_REDIRECT_URI
from .core.errors import StravaAPIError, StravaAuthError
from .schemas import (
    StravaActivity,
    StravaActivityDetail,
    StravaAthlete,
    StravaTokenResponse,
)

logger = logging.getLogger(__name__)

AUTH_BASE = "https://www.strava.com/oauth/authorize"
TOKEN_URL = "https://www.strava.com/oauth/token"
API_BASE = "https://www.strava.com/api/v3"

SCOPES = "read,activity:read_all"

TOKEN_TIMEOUT = 20.0
LIST_TIMEOUT = 10.0
DETAIL_TIMEOUT = 5.0

_ACTIVITY_LIST = TypeAdapter(List[StravaActivity])


def auth_url(state: str = "state1") -> str:
    """Generate Strava OAuth authorization URL."""

    params = {
        "client_id": STRAVA_CLIENT_ID,
        "redirect_uri": STRAVA_REDIRECT_URI,
        "response_type": "code",
        "approval_prompt": "auto",
        "scope": SCOPES,
        "state": state,
    }
    return f"{AUTH_BASE}?{urlencode(params)}"


async def _token_request(
    data: Dict[str, Any], transport: Optional[httpx.AsyncBaseTransport]
) -> StravaTokenResponse:
    payload = {
        "client_id": STRAVA_CLIENT_ID,
        "client_secret": STRAVA_CLIENT_SECRET,
        **data,
    }
    try:
        async with httpx.AsyncClient(timeout=TOKEN_TIMEOUT, transport=transport) as client:
            response = await client.post(TOKEN_URL, data=payload)
    except httpx.HTTPError as exc:
        raise StravaAuthError(f"Token request failed: {exc}") from exc

    if response.status_code != 200:
        raise StravaAuthError(
            f"Token request rejected: {response.status_code} - {response.text}",
            status_code=response.status_code,
        )
    try:
        return StravaTokenResponse.model_validate(response.json())
    except (ValueError, ValidationError) as exc:
        raise StravaAuthError("Unexpected token response payload") from exc


async def exchange_code_for_token(
    code: str, *, transport: Optional[httpx.AsyncBaseTransport] = None
) -> StravaTokenResponse:
    """Exchange authorization code for access token."""

    return await _token_request(
        {"code": code, "grant_type": "authorization_code"}, transport
    )


async def refresh_access_token(
    refresh_token: str, *, transport: Optional[httpx.AsyncBaseTransport] = None
) -> StravaTokenResponse:
    """Refresh expired access token."""

    return await _token_request(
        {"grant_type": "refresh_token", "refresh_token": refresh_token}, transport
    )


@dataclass(frozen=True)
class Fetched:
    """Activity detail retrieved successfully."""

    detail: StravaActivityDetail


@dataclass(frozen=True)
class Skipped:
    """Activity detail could not be used; the sync carries on without it."""

    activity_id: int
    reason: str


DetailOutcome = Union[Fetched, Skipped]


class StravaClient:
    """Authenticated client for the Strava v3 API.

    Use as an async context manager. ``calls`` counts every request sent,
    successful or not, so callers can report API usage per sync.
    """

    def __init__(
        self,
        access_token: str,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.access_token = access_token
        self.calls = 0
        self._client = httpx.AsyncClient(
            base_url=API_BASE,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=LIST_TIMEOUT,
            transport=transport,
        )

    async def __aenter__(self) -> "StravaClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(
        self, path: str, params: Optional[Dict[str, Any]] = None, *, timeout: float
    ) -> httpx.Response:
        self.calls += 1
        return await self._client.get(path, params=params or {}, timeout=timeout)

    async def get_athlete(self) -> StravaAthlete:
        """Fetch the authenticated athlete's profile."""

        try:
            response = await self._get("/athlete", timeout=LIST_TIMEOUT)
        except httpx.HTTPError as exc:
            raise StravaAPIError(f"Athlete request failed: {exc}") from exc
        self._raise_for_status(response, "athlete")
        try:
            return StravaAthlete.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise StravaAPIError("Unexpected athlete payload") from exc

    async def list_activities(
        self, after: int, *, per_page: int = 50, page: int = 1
    ) -> List[StravaActivity]:
        """Fetch one page of activities started after ``after`` (Unix seconds)."""

        try:
            response = await self._get(
                "/athlete/activities",
                params={"after": after, "per_page": per_page, "page": page},
                timeout=LIST_TIMEOUT,
            )
        except httpx.HTTPError as exc:
            raise StravaAPIError(f"Activity list request failed: {exc}") from exc
        self._raise_for_status(response, "activity list")
        try:
            return _ACTIVITY_LIST.validate_python(response.json())
        except (ValueError, ValidationError) as exc:
            raise StravaAPIError("Unexpected activity list payload") from exc

    async def list_activities_after(
        self, after: int, *, per_page: int = 50, max_pages: int = 1
    ) -> List[StravaActivity]:
        """Page through activities after ``after`` until a short page.

        A failure on the first page propagates. A failure on a later page
        stops paging and returns what was already fetched.
        """

        activities: List[StravaActivity] = []
        for page in range(1, max_pages + 1):
            try:
                batch = await self.list_activities(after, per_page=per_page, page=page)
            except StravaAuthError:
                raise
            except StravaAPIError:
                if page == 1:
                    raise
                logger.warning(
                    "Activity list page %s failed, keeping %s activities",
                    page,
                    len(activities),
                    exc_info=True,
                )
                break
            activities.extend(batch)
            if len(batch) < per_page:
                break
        return activities

    async def get_activity_detail(self, activity_id: int) -> DetailOutcome:
        """Fetch one activity with its best efforts; never raises."""

        try:
            response = await self._get(
                f"/activities/{activity_id}",
                params={"include_all_efforts": "true"},
                timeout=DETAIL_TIMEOUT,
            )
        except httpx.TimeoutException:
            logger.info("Detail fetch for activity %s timed out", activity_id)
            return Skipped(activity_id, "timeout")
        except httpx.HTTPError as exc:
            logger.info("Detail fetch for activity %s failed: %s", activity_id, exc)
            return Skipped(activity_id, "network")

        if response.status_code == 429:
            logger.warning(
                "Strava rate limit hit on activity %s (usage %s)",
                activity_id,
                response.headers.get("X-RateLimit-Usage"),
            )
            return Skipped(activity_id, "rate_limited")
        if response.status_code != 200:
            logger.info(
                "Detail fetch for activity %s returned %s",
                activity_id,
                response.status_code,
            )
            return Skipped(activity_id, f"http_{response.status_code}")

        try:
            return Fetched(StravaActivityDetail.model_validate(response.json()))
        except (ValueError, ValidationError):
            logger.warning("Malformed detail payload for activity %s", activity_id)
            return Skipped(activity_id, "malformed")

    @staticmethod
    def _raise_for_status(response: httpx.Response, what: str) -> None:
        if response.status_code == 401:
            raise StravaAuthError(
                f"Strava rejected the access token ({what})", status_code=401
            )
        if response.status_code != 200:
            raise StravaAPIError(
                f"Strava {what} request failed: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )


__all__ = [
    "API_BASE",
    "DETAIL_TIMEOUT",
    "DetailOutcome",
    "Fetched",
    "LIST_TIMEOUT",
    "Skipped",
    "StravaClient",
    "TOKEN_URL",
    "auth_url",
    "exchange_code_for_token",
    "refresh_access_token",
]
