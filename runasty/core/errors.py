"""Exception types raised across the service layer."""

from __future__ import annotations

from typing import Optional


class RunastyError(Exception):
    """Base class for application errors."""


class StravaAPIError(RunastyError):
    """Strava returned an error, timed out, or sent an unexpected payload."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StravaAuthError(StravaAPIError):
    """No usable access token; the athlete has to log in again."""


class SyncInputError(RunastyError):
    """The sync was called with arguments it cannot work with."""


__all__ = ["RunastyError", "StravaAPIError", "StravaAuthError", "SyncInputError"]
