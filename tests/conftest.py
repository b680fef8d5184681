"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database. Strava is replaced by
``FakeStrava``, an ``httpx.MockTransport`` that serves canned activities and
records every request it receives.
"""

import os

os.environ.setdefault("STRAVA_CLIENT_ID", "12345")
os.environ.setdefault("STRAVA_CLIENT_SECRET", "test-secret")
os.environ.setdefault("STRAVA_REDIRECT_URI", "http://localhost:3000/api/strava/callback")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("FRONTEND_ORIGIN", "http://localhost:3000")
os.environ.setdefault("STRAVA_WEBHOOK_VERIFY_TOKEN", "verify-me")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from runasty import models  # noqa: F401
from runasty.models import Profile

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

_DETAIL_PATH = re.compile(r"^/api/v3/activities/(\d+)$")


def activity_json(
    activity_id: int,
    *,
    distance: float = 5200.0,
    pr_count: int = 0,
    achievement_count: int = 0,
    sport_type: str = "Run",
    start_date: str = "2026-10-10T07:00:00Z",
) -> Dict[str, Any]:
    return {
        "id": activity_id,
        "name": f"Run {activity_id}",
        "distance": distance,
        "moving_time": 1500,
        "elapsed_time": 1600,
        "type": sport_type,
        "sport_type": sport_type,
        "start_date": start_date,
        "pr_count": pr_count,
        "achievement_count": achievement_count,
    }


def effort_json(
    name: str,
    elapsed_time: int,
    activity_id: int,
    start_date: str = "2026-10-10T07:05:00Z",
) -> Dict[str, Any]:
    return {
        "id": activity_id * 10,
        "name": name,
        "elapsed_time": elapsed_time,
        "moving_time": elapsed_time,
        "start_date": start_date,
        "distance": 5000,
        "pr_rank": 1,
        "activity": {"id": activity_id},
    }


class FakeStrava:
    """In-process stand-in for the Strava API."""

    def __init__(self) -> None:
        self.activities: List[Dict[str, Any]] = []
        self.details: Dict[int, Dict[str, Any]] = {}
        self.detail_failures: Dict[int, Any] = {}
        self.list_status = 200
        self.failing_pages: set = set()
        self.token_status = 200
        self.token_payload: Optional[Dict[str, Any]] = None
        self.requests: List[httpx.Request] = []

    # ---- scenario helpers ----
    def add_run(
        self, activity_id: int, efforts: List[Dict[str, Any]], **activity_kwargs: Any
    ) -> None:
        activity = activity_json(activity_id, **activity_kwargs)
        self.activities.append(activity)
        self.details[activity_id] = {**activity, "best_efforts": efforts}

    @property
    def detail_calls(self) -> List[int]:
        ids = []
        for request in self.requests:
            match = _DETAIL_PATH.match(request.url.path)
            if match:
                ids.append(int(match.group(1)))
        return ids

    @property
    def list_calls(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/api/v3/athlete/activities"]

    @property
    def token_calls(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/oauth/token"]

    # ---- transport ----
    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/oauth/token":
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"message": "Bad Request"})
            payload = self.token_payload or {
                "access_token": "new-access",
                "refresh_token": "new-refresh",
                "expires_at": int(NOW.timestamp()) + 6 * 3600,
                "expires_in": 21600,
                "token_type": "Bearer",
            }
            return httpx.Response(200, json=payload)

        if path == "/api/v3/athlete/activities":
            page = int(request.url.params.get("page", "1"))
            per_page = int(request.url.params.get("per_page", "30"))
            if self.list_status != 200 or page in self.failing_pages:
                status = self.list_status if self.list_status != 200 else 500
                return httpx.Response(status, json={"message": "error"})
            start = (page - 1) * per_page
            return httpx.Response(200, json=self.activities[start : start + per_page])

        if path == "/api/v3/athlete":
            return httpx.Response(200, json={"id": 1, "firstname": "Ana", "lastname": "Lima"})

        match = _DETAIL_PATH.match(path)
        if match:
            activity_id = int(match.group(1))
            failure = self.detail_failures.get(activity_id)
            if failure == "timeout":
                raise httpx.ReadTimeout("timed out", request=request)
            if failure == "malformed":
                return httpx.Response(200, json={"unexpected": True})
            if isinstance(failure, int):
                return httpx.Response(failure, json={"message": "error"})
            detail = self.details.get(activity_id)
            if detail is None:
                return httpx.Response(404, json={"message": "Record Not Found"})
            return httpx.Response(200, json=detail)

        return httpx.Response(404, json={"message": "unknown path"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def fake_strava() -> FakeStrava:
    return FakeStrava()


@pytest.fixture
def make_profile(session):
    """Factory for stored athlete profiles with a valid token."""

    def _make(
        athlete_id: int,
        *,
        sex: Optional[str] = None,
        last_sync_at: Optional[datetime] = None,
        token_expires_at: Optional[int] = None,
        full_name: Optional[str] = None,
    ) -> Profile:
        profile = Profile(
            athlete_id=athlete_id,
            username=f"runner{athlete_id}",
            full_name=full_name or f"Runner {athlete_id}",
            sex=sex,
            access_token=f"access-{athlete_id}",
            refresh_token=f"refresh-{athlete_id}",
            token_expires_at=(
                token_expires_at
                if token_expires_at is not None
                else int(NOW.timestamp()) + 6 * 3600
            ),
            last_sync_at=last_sync_at,
        )
        session.add(profile)
        session.commit()
        session.refresh(profile)
        return profile

    return _make
