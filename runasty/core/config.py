"""
Runtime configuration read from the environment (and ``.env`` when present).

Everything is resolved once at import time into module constants. Missing
required values fail fast with ``RuntimeError``.
"""

from __future__ import annotations

import os
from typing import Iterable, List, Optional

from dotenv import load_dotenv

load_dotenv(override=False)


def _require_env(name: str) -> str:
    """Return a required environment variable or raise an error."""

    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: Optional[int] = None, *, minimum: int = 0) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        if default is None:
            raise RuntimeError(f"Missing required environment variable: {name}")
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise RuntimeError(f"{name} must be >= {minimum}")
    return value


def _split_csv(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def _unique(values: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(value for value in values if value))


# Strava ---------------------------------------------------------------------
STRAVA_CLIENT_ID = _env_int("STRAVA_CLIENT_ID", minimum=1)
STRAVA_CLIENT_SECRET = _require_env("STRAVA_CLIENT_SECRET")
STRAVA_REDIRECT_URI = _require_env("STRAVA_REDIRECT_URI")
# Shared secret echoed back during the push-subscription handshake.
STRAVA_WEBHOOK_VERIFY_TOKEN = os.getenv("STRAVA_WEBHOOK_VERIFY_TOKEN") or None


# Web session and browser origins --------------------------------------------
SECRET_KEY = _require_env("SECRET_KEY")

# Comma-separated; the first entry is where OAuth redirects land.
FRONTEND_ORIGINS = _split_csv(_require_env("FRONTEND_ORIGIN"))
FRONTEND_ORIGIN = FRONTEND_ORIGINS[0] if FRONTEND_ORIGINS else ""

_DEV_ORIGINS = ("http://localhost:3000", "http://127.0.0.1:3000")
ALLOWED_CORS_ORIGINS = _unique(
    [
        *FRONTEND_ORIGINS,
        *_split_csv(os.getenv("ADDITIONAL_ALLOWED_ORIGINS")),
        *_DEV_ORIGINS,
    ]
)

COOKIE_DOMAIN = os.getenv("COOKIE_DOMAIN") or None
COOKIE_SECURE = _env_bool("COOKIE_SECURE", False)
COOKIE_SAMESITE = os.getenv("COOKIE_SAMESITE", "lax")


# Process --------------------------------------------------------------------
BACKEND_URL = os.getenv("BACKEND_URL", "")
DATABASE_URL = os.getenv("DATABASE_URL", "")
DB_RESET = _env_bool("DB_RESET", False)

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")


# Sync policy ----------------------------------------------------------------
# Strava allows ~100 requests per 15 minutes and ~1000 per day.
SYNC_MANUAL_COOLDOWN_MINUTES = _env_int("SYNC_MANUAL_COOLDOWN_MINUTES", 5)
SYNC_AUTO_COOLDOWN_MINUTES = _env_int("SYNC_AUTO_COOLDOWN_MINUTES", 60)

SYNC_FIRST_DETAIL_CAP = _env_int("SYNC_FIRST_DETAIL_CAP", 15, minimum=1)
SYNC_MANUAL_DETAIL_CAP = _env_int("SYNC_MANUAL_DETAIL_CAP", 10, minimum=1)
SYNC_AUTO_DETAIL_CAP = _env_int("SYNC_AUTO_DETAIL_CAP", 3, minimum=1)

SYNC_FIRST_WINDOW_DAYS = _env_int("SYNC_FIRST_WINDOW_DAYS", 90, minimum=1)
SYNC_FULL_WINDOW_DAYS = _env_int("SYNC_FULL_WINDOW_DAYS", 365, minimum=1)
SYNC_MAX_LIST_PAGES = _env_int("SYNC_MAX_LIST_PAGES", 3, minimum=1)

TOKEN_REFRESH_BUFFER_SECONDS = _env_int("TOKEN_REFRESH_BUFFER_SECONDS", 0)
WEBHOOK_TOKEN_REFRESH_BUFFER_SECONDS = _env_int(
    "WEBHOOK_TOKEN_REFRESH_BUFFER_SECONDS", 3600
)


__all__ = [
    "ALLOWED_CORS_ORIGINS",
    "BACKEND_URL",
    "COOKIE_DOMAIN",
    "COOKIE_SAMESITE",
    "COOKIE_SECURE",
    "DATABASE_URL",
    "DB_RESET",
    "ENVIRONMENT",
    "FRONTEND_ORIGIN",
    "FRONTEND_ORIGINS",
    "LOG_FORMAT",
    "LOG_LEVEL",
    "SECRET_KEY",
    "STRAVA_CLIENT_ID",
    "STRAVA_CLIENT_SECRET",
    "STRAVA_REDIRECT_URI",
    "STRAVA_WEBHOOK_VERIFY_TOKEN",
    "SYNC_AUTO_COOLDOWN_MINUTES",
    "SYNC_AUTO_DETAIL_CAP",
    "SYNC_FIRST_DETAIL_CAP",
    "SYNC_FIRST_WINDOW_DAYS",
    "SYNC_FULL_WINDOW_DAYS",
    "SYNC_MANUAL_COOLDOWN_MINUTES",
    "SYNC_MANUAL_DETAIL_CAP",
    "SYNC_MAX_LIST_PAGES",
    "TOKEN_REFRESH_BUFFER_SECONDS",
    "WEBHOOK_TOKEN_REFRESH_BUFFER_SECONDS",
]
