"""HTTP tests for the FastAPI routes."""

from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient
from sqlmodel import select

from runasty.api.routers import strava as strava_routes
from runasty.api.routers import system as system_routes
from runasty.api.session import current_athlete_id
from runasty.app import app
from runasty.core import get_session
from runasty.models import PersonalRecord, Profile
from runasty.schemas import StravaAthlete, StravaTokenResponse
from runasty.services.distances import Distance
from runasty.services.leadership import open_interval, record_possible_leadership_change
from runasty.services.rankings import athlete_level
from runasty.services.reconciliation import Improvement
from runasty.services.records import write_if_faster
from runasty.services.sync import RecordDelta, SyncResult, SyncStatus

from .conftest import NOW


@pytest.fixture
def login():
    state = {"athlete_id": None}
    app.dependency_overrides[current_athlete_id] = lambda: state["athlete_id"]

    def _login(athlete_id):
        state["athlete_id"] = athlete_id

    return _login


@pytest.fixture
def client(session, login):
    app.dependency_overrides[get_session] = lambda: session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class SyncCalls(list):
    """Arguments of every sync the routes started; ``result`` is what they get back."""


@pytest.fixture
def recorded_sync(monkeypatch):
    calls = SyncCalls()
    calls.result = SyncResult(status=SyncStatus.SUCCESS, message="ok")

    async def fake_sync(session, athlete_id, options=None, **kwargs):
        calls.append((athlete_id, options))
        return calls.result

    monkeypatch.setattr(strava_routes, "sync_athlete", fake_sync)
    return calls


def test_health(client):
    assert client.get("/health").json() == {"ok": True, "database": "ok"}
    assert client.get("/healthz").json() == {"ok": True}


def test_health_reports_database_outage(client, monkeypatch):
    monkeypatch.setattr(system_routes, "check_db_connection", lambda: False)

    response = client.get("/health")

    assert response.status_code == 503
    assert response.json()["database"] == "unavailable"


def test_config_lists_distances(client):
    body = client.get("/config").json()
    assert [d["key"] for d in body["distances"]] == ["5k", "10k", "21k"]
    assert body["categories"] == ["all", "M", "F"]
    assert body["sync_cooldown_minutes"] == {"manual": 5, "auto": 60}


# ---- webhook ---------------------------------------------------------------


def test_webhook_handshake_echoes_challenge(client):
    response = client.get(
        "/api/strava/webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "c-1"},
    )

    assert response.status_code == 200
    assert response.json() == {"hub.challenge": "c-1"}


def test_webhook_handshake_rejects_wrong_token(client):
    response = client.get(
        "/api/strava/webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "c-1"},
    )

    assert response.status_code == 403


def test_webhook_handshake_without_configured_token(client, monkeypatch):
    monkeypatch.setattr(strava_routes, "STRAVA_WEBHOOK_VERIFY_TOKEN", None)

    response = client.get(
        "/api/strava/webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "c"},
    )

    assert response.status_code == 500


def _event(**overrides):
    event = {
        "object_type": "activity",
        "object_id": 555,
        "aspect_type": "create",
        "owner_id": 1,
        "subscription_id": 9,
        "event_time": 1760000000,
    }
    event.update(overrides)
    return event


def test_webhook_activity_create_triggers_automated_sync(client, make_profile, recorded_sync):
    make_profile(1)

    response = client.post("/api/strava/webhook", json=_event())

    assert response.status_code == 200
    assert response.json() == {"received": True, "synced": True}
    ((athlete_id, options),) = recorded_sync
    assert athlete_id == 1
    assert options.from_webhook and options.is_auto_sync


@pytest.mark.parametrize(
    "overrides",
    [{"aspect_type": "delete"}, {"object_type": "athlete", "aspect_type": "update"}],
)
def test_webhook_ignores_events_that_cannot_add_records(
    client, make_profile, recorded_sync, overrides
):
    make_profile(1)

    response = client.post("/api/strava/webhook", json=_event(**overrides))

    assert response.json() == {"received": True}
    assert list(recorded_sync) == []


def test_webhook_for_unknown_athlete_is_acknowledged(client, recorded_sync):
    response = client.post("/api/strava/webhook", json=_event(owner_id=404))

    assert response.status_code == 200
    assert list(recorded_sync) == []


def test_webhook_malformed_payload_is_acknowledged(client, recorded_sync):
    response = client.post("/api/strava/webhook", json={"hello": "world"})

    assert response.status_code == 200
    assert response.json() == {"received": True}


# ---- sync ------------------------------------------------------------------


def test_sync_requires_login(client, recorded_sync):
    response = client.post("/api/strava/sync", json={})

    assert response.status_code == 401
    assert list(recorded_sync) == []


def test_sync_passes_options(client, login, recorded_sync):
    login(1)
    recorded_sync.result = SyncResult(
        status=SyncStatus.SUCCESS,
        message="1 record(s) updated!",
        records=[RecordDelta(Distance.SHORT, 1674, NOW, 101)],
        activities_examined=4,
        api_calls=5,
    )

    response = client.post("/api/strava/sync", json={"isAutoSync": True, "fullSync": True})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "1 record(s) updated!"
    assert body["records"][0]["distance"] == "5k"
    assert body["records"][0]["achieved_at"] == "2026-10-19T12:00:00Z"
    assert body["activitiesExamined"] == 4
    assert body["apiCalls"] == 5
    ((athlete_id, options),) = recorded_sync
    assert athlete_id == 1
    assert options.is_auto_sync and options.full_sync and not options.force


def test_sync_cooldown_is_a_successful_skip(client, login, recorded_sync):
    login(1)
    recorded_sync.result = SyncResult(
        status=SyncStatus.SKIPPED,
        message="Please wait 3 minutes before syncing again.",
        wait_minutes=3,
    )

    response = client.post("/api/strava/sync", json={})

    assert response.status_code == 200
    assert response.json()["skipped"] is True
    assert response.json()["waitMinutes"] == 3


def test_sync_auth_failure_returns_401(client, login, recorded_sync):
    login(1)
    recorded_sync.result = SyncResult.failed("Please log in again.", "auth", auth_required=True)

    response = client.post("/api/strava/sync", json={})

    assert response.status_code == 401
    assert response.json()["details"] == "auth"


def test_sync_upstream_failure_hides_raw_error(client, login, recorded_sync):
    login(1)
    recorded_sync.result = SyncResult.failed(
        "Could not reach Strava. Please try again later.",
        "upstream",
        error="Strava activity list request failed: 500 - internal",
        api_calls=1,
    )

    response = client.post("/api/strava/sync", json={})

    assert response.status_code == 400
    body = response.json()
    assert body["details"] == "upstream"
    assert "500" not in str(body)


def test_sync_get_is_not_allowed(client):
    assert client.get("/api/strava/sync").status_code == 405


# ---- oauth -----------------------------------------------------------------


def test_auth_url(client):
    body = client.get("/api/strava/auth-url").json()
    assert body["auth_url"].startswith("https://www.strava.com/oauth/authorize?")


@pytest.fixture
def strava_login(monkeypatch):
    """Fake code exchange for athlete 77; records scheduled first syncs."""

    scheduled = []

    async def fake_exchange(code):
        assert code == "the-code"
        return StravaTokenResponse(
            access_token="a",
            refresh_token="r",
            expires_at=2000000000,
            athlete=StravaAthlete(id=77, firstname="Ana", lastname="Lima", sex="F"),
        )

    async def fake_first_sync(athlete_id):
        scheduled.append(athlete_id)

    monkeypatch.setattr(strava_routes, "exchange_code_for_token", fake_exchange)
    monkeypatch.setattr(strava_routes, "_first_sync", fake_first_sync)
    return scheduled


def _issued_state(client):
    url = client.get("/api/strava/auth-url").json()["auth_url"]
    return parse_qs(urlparse(url).query)["state"][0]


def test_callback_creates_profile_and_schedules_first_sync(client, session, strava_login):
    state = _issued_state(client)

    response = client.get(
        "/api/strava/callback",
        params={"code": "the-code", "scope": "read,activity:read_all", "state": state},
        follow_redirects=False,
    )

    assert response.status_code in (302, 307)
    assert response.headers["location"] == "http://localhost:3000/ranking"
    profile = session.get(Profile, 77)
    assert profile.full_name == "Ana Lima"
    assert profile.sex == "F"
    assert profile.access_token == "a"
    assert strava_login == [77]
    app.dependency_overrides.pop(current_athlete_id)
    assert client.get("/api/profile").json()["profile"]["athlete_id"] == 77


def test_callback_without_issued_state_is_rejected(client, session, strava_login):
    response = client.get(
        "/api/strava/callback",
        params={"code": "the-code", "state": "anything"},
        follow_redirects=False,
    )

    assert response.status_code == 400
    assert session.get(Profile, 77) is None
    app.dependency_overrides.pop(current_athlete_id)
    assert client.get("/api/profile").status_code == 401


def test_callback_with_wrong_state_is_rejected(client, session, strava_login):
    _issued_state(client)

    response = client.get(
        "/api/strava/callback",
        params={"code": "the-code", "state": "forged"},
        follow_redirects=False,
    )

    assert response.status_code == 400
    assert session.get(Profile, 77) is None


def test_state_is_single_use(client, strava_login):
    state = _issued_state(client)
    params = {"code": "the-code", "state": state}
    client.get("/api/strava/callback", params=params, follow_redirects=False)

    replay = client.get("/api/strava/callback", params=params, follow_redirects=False)

    assert replay.status_code == 400


def test_debug_config_is_not_exposed(client):
    assert client.get("/api/strava/debug-config").status_code == 404


def test_callback_denied_redirects_to_login(client):
    response = client.get(
        "/api/strava/callback", params={"error": "access_denied"}, follow_redirects=False
    )

    assert response.headers["location"].endswith("/login?error=access_denied")


# ---- ranking, leaders, profile ---------------------------------------------


def _seed(session, athlete_id, seconds, distance=Distance.SHORT):
    write_if_faster(session, athlete_id, Improvement(distance, seconds, NOW, athlete_id * 100))
    record_possible_leadership_change(
        session, distance, athlete_id, seconds, now=NOW - timedelta(days=2)
    )


def test_ranking_orders_by_time_and_filters_by_sex(client, session, make_profile):
    make_profile(1, sex="M")
    make_profile(2, sex="F")
    make_profile(3, sex="F")
    _seed(session, 1, 1500)
    _seed(session, 2, 1600)
    _seed(session, 3, 1550)

    overall = client.get("/api/ranking", params={"distance": "5k"}).json()
    women = client.get("/api/ranking", params={"distance": "5k", "sex": "F"}).json()

    assert [e["athlete_id"] for e in overall["entries"]] == [1, 3, 2]
    assert overall["entries"][0]["time"] == "25:00"
    assert [e["athlete_id"] for e in women["entries"]] == [3, 2]
    assert [e["position"] for e in women["entries"]] == [1, 2]


def test_ranking_rejects_unknown_distance_and_sex(client):
    assert client.get("/api/ranking", params={"distance": "marathon"}).status_code == 400
    assert client.get("/api/ranking", params={"sex": "X"}).status_code == 400


def test_leaders(client, session, make_profile):
    make_profile(1)
    _seed(session, 1, 1500)

    leaders = {row["distance"]: row for row in client.get("/api/leaders").json()["leaders"]}

    assert leaders["5k"]["leader"]["athlete_id"] == 1
    assert leaders["5k"]["record_time_seconds"] == 1500
    assert leaders["10k"]["leader"] is None


def test_profile_masks_tokens(client, session, login, make_profile):
    make_profile(1)
    _seed(session, 1, 1500)
    login(1)

    body = client.get("/api/profile").json()

    assert body["profile"]["access_token"] == "***"
    assert body["profile"]["refresh_token"] == "***"
    short = next(row for row in body["distances"] if row["distance"] == "5k")
    assert short["position"] == 1
    assert short["is_leader"] is True
    assert short["total_leader_days"] >= 2


def test_profile_requires_login(client):
    assert client.get("/api/profile").status_code == 401


def test_profile_level_for_current_leader(client, session, login, make_profile):
    make_profile(1)
    make_profile(2)
    _seed(session, 2, 1600)
    _seed(session, 1, 1500)
    login(1)

    level = client.get("/api/profile/level").json()

    assert level["tier"] == "leader"
    assert level["level"] == "King of the 5K"
    assert level["best_position"] == {"distance": "5k", "position": 1}
    assert client.get("/api/profile").json()["level"] == level


def test_profile_level_uses_best_position(client, session, login, make_profile):
    for athlete_id in range(1, 13):
        make_profile(athlete_id)
        _seed(session, athlete_id, 3000 + athlete_id * 10, Distance.MEDIUM)
    login(12)

    level = client.get("/api/profile/level").json()

    assert level["tier"] == "top20"
    assert level["level"] == "Top 12 in the 10K"
    assert level["best_position"] == {"distance": "10k", "position": 12}


def test_profile_level_without_records(client, login, make_profile):
    make_profile(1)
    login(1)

    level = client.get("/api/profile/level").json()

    assert level["tier"] == "new"
    assert level["best_position"] is None


def test_profile_level_requires_login(client):
    assert client.get("/api/profile/level").status_code == 401


@pytest.mark.parametrize(
    "position,tier",
    [(2, "podium"), (3, "podium"), (4, "top10"), (50, "top50"), (51, "runner")],
)
def test_level_tiers_by_position(position, tier):
    stats = [
        {"distance": "5k", "label": "5K", "position": None},
        {"distance": "21k", "label": "Half marathon", "position": position},
    ]

    level = athlete_level(stats)

    assert level["tier"] == tier
    assert level["level"] == f"Top {position} in the Half marathon"


def test_delete_profile_hands_leadership_to_next_fastest(
    client, session, login, make_profile
):
    make_profile(1)
    make_profile(2)
    _seed(session, 2, 1600)
    _seed(session, 1, 1500)
    login(1)

    response = client.delete("/api/profile")

    assert response.json() == {"ok": True, "deleted_athlete": 1}
    assert session.get(Profile, 1) is None
    remaining = session.exec(select(PersonalRecord.athlete_id)).all()
    assert remaining == [2]
    assert open_interval(session, Distance.SHORT).athlete_id == 2
