"""Core configuration and infrastructure helpers."""

from .config import (
    ALLOWED_CORS_ORIGINS,
    BACKEND_URL,
    COOKIE_DOMAIN,
    COOKIE_SAMESITE,
    COOKIE_SECURE,
    DB_RESET,
    FRONTEND_ORIGIN,
    FRONTEND_ORIGINS,
    SECRET_KEY,
    STRAVA_CLIENT_ID,
    STRAVA_CLIENT_SECRET,
    STRAVA_REDIRECT_URI,
    STRAVA_WEBHOOK_VERIFY_TOKEN,
)
from .database import check_db_connection, engine, get_session, init_db
from .errors import RunastyError, StravaAPIError, StravaAuthError, SyncInputError
from .time import as_utc, isoformat, utcnow

__all__ = [
    "ALLOWED_CORS_ORIGINS",
    "BACKEND_URL",
    "COOKIE_DOMAIN",
    "COOKIE_SAMESITE",
    "COOKIE_SECURE",
    "DB_RESET",
    "FRONTEND_ORIGIN",
    "FRONTEND_ORIGINS",
    "SECRET_KEY",
    "STRAVA_CLIENT_ID",
    "STRAVA_CLIENT_SECRET",
    "STRAVA_REDIRECT_URI",
    "STRAVA_WEBHOOK_VERIFY_TOKEN",
    "RunastyError",
    "StravaAPIError",
    "StravaAuthError",
    "SyncInputError",
    "as_utc",
    "check_db_connection",
    "engine",
    "get_session",
    "init_db",
    "isoformat",
    "utcnow",
]
