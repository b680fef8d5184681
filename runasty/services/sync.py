"""
Sync orchestration.

Decides whether a sync may run (cooldown), supplies a fresh token, picks the
history window and detail-call budget, runs reconciliation, persists the
improvements and feeds them to the leadership ledger. Every outcome, including
unexpected failures, comes back as a ``SyncResult``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from ..core.config import (
    SYNC_AUTO_DETAIL_CAP,
    SYNC_FIRST_DETAIL_CAP,
    SYNC_FIRST_WINDOW_DAYS,
    SYNC_FULL_WINDOW_DAYS,
    SYNC_MANUAL_DETAIL_CAP,
    SYNC_MAX_LIST_PAGES,
    TOKEN_REFRESH_BUFFER_SECONDS,
    WEBHOOK_TOKEN_REFRESH_BUFFER_SECONDS,
)
from ..core.errors import StravaAPIError, StravaAuthError, SyncInputError
from ..core.time import as_utc, isoformat, utcnow
from ..models import Profile
from ..strava_client import StravaClient
from .cooldown import CooldownPolicy
from .distances import Distance
from .leadership import (
    LeadershipChange,
    categories_for,
    record_possible_leadership_change,
)
from .reconciliation import ReconciliationResult, SyncPlan, reconcile
from .records import load_current_times, write_if_faster
from .tokens import ensure_fresh_token

logger = logging.getLogger(__name__)

FIRST_SYNC_PAGE_SIZE = 100
INCREMENTAL_PAGE_SIZE = 50


@dataclass(frozen=True)
class SyncOptions:
    is_auto_sync: bool = False
    force: bool = False
    full_sync: bool = False
    from_webhook: bool = False

    @property
    def automated(self) -> bool:
        return self.is_auto_sync or self.from_webhook


class SyncStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class RecordDelta:
    distance: Distance
    time_seconds: int
    achieved_at: Optional[datetime]
    activity_id: Optional[int]
    previous_time_seconds: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "distance": self.distance.value,
            "time_seconds": self.time_seconds,
            "achieved_at": isoformat(self.achieved_at),
            "activity_id": self.activity_id,
            "previous_time_seconds": self.previous_time_seconds,
        }


@dataclass
class SyncResult:
    status: SyncStatus
    message: str
    records: List[RecordDelta] = field(default_factory=list)
    activities_examined: int = 0
    api_calls: int = 0
    skipped_details: int = 0
    wait_minutes: Optional[int] = None
    failed_writes: List[str] = field(default_factory=list)
    leadership_changes: List[LeadershipChange] = field(default_factory=list)
    leadership_errors: List[str] = field(default_factory=list)
    auth_required: bool = False
    error_code: Optional[str] = None
    # Raw upstream/internal detail; logged, never shown to end users.
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == SyncStatus.SUCCESS

    @property
    def skipped(self) -> bool:
        return self.status == SyncStatus.SKIPPED

    @classmethod
    def failed(
        cls,
        message: str,
        error_code: str,
        *,
        error: Optional[str] = None,
        api_calls: int = 0,
        auth_required: bool = False,
    ) -> "SyncResult":
        return cls(
            status=SyncStatus.FAILED,
            message=message,
            error_code=error_code,
            error=error,
            api_calls=api_calls,
            auth_required=auth_required,
        )


def plan_sync(
    last_sync_at: Optional[datetime], options: SyncOptions, now: datetime
) -> SyncPlan:
    """Choose the history window and the detail-call cap for one sync."""

    first_sync = last_sync_at is None
    if options.full_sync:
        after = now - timedelta(days=SYNC_FULL_WINDOW_DAYS)
    elif first_sync:
        after = now - timedelta(days=SYNC_FIRST_WINDOW_DAYS)
    else:
        after = as_utc(last_sync_at)

    if first_sync or options.full_sync:
        detail_cap = SYNC_FIRST_DETAIL_CAP
        per_page = FIRST_SYNC_PAGE_SIZE
    elif options.automated:
        detail_cap = SYNC_AUTO_DETAIL_CAP
        per_page = INCREMENTAL_PAGE_SIZE
    else:
        detail_cap = SYNC_MANUAL_DETAIL_CAP
        per_page = INCREMENTAL_PAGE_SIZE

    return SyncPlan(
        after=int(after.timestamp()),
        detail_cap=detail_cap,
        per_page=per_page,
        max_pages=SYNC_MAX_LIST_PAGES,
        first_sync=first_sync,
    )


def _summary_message(outcome: ReconciliationResult, saved: int, failed: int) -> str:
    if outcome.activities_examined == 0:
        message = "No new activities since the last sync."
    elif saved == 0:
        message = f"{outcome.activities_examined} run(s) checked, no new records."
    else:
        message = f"{saved} record(s) updated!"
    if failed:
        message += f" {failed} record(s) could not be saved and will be retried."
    return message


def _persist(
    session: Session,
    athlete_id: int,
    sex: Optional[str],
    outcome: ReconciliationResult,
    current_times: Dict[Distance, int],
    result: SyncResult,
    now: datetime,
) -> None:
    for distance, improvement in outcome.improvements.items():
        try:
            written = write_if_faster(session, athlete_id, improvement, now=now)
        except SQLAlchemyError:
            session.rollback()
            logger.exception(
                "Could not save %s record for athlete %s", distance.value, athlete_id
            )
            result.failed_writes.append(distance.value)
            continue
        if not written:
            logger.info(
                "Skipped %s record for athlete %s: a faster time is already stored",
                distance.value,
                athlete_id,
            )
            continue

        result.records.append(
            RecordDelta(
                distance=distance,
                time_seconds=improvement.time_seconds,
                achieved_at=improvement.achieved_at,
                activity_id=improvement.activity_id,
                previous_time_seconds=current_times.get(distance),
            )
        )

        # Leadership is bookkept after the record commit; a failure here leaves
        # the record in place and is repaired by realign_leaders.
        for category in categories_for(sex):
            try:
                change = record_possible_leadership_change(
                    session,
                    distance,
                    athlete_id,
                    improvement.time_seconds,
                    category=category,
                    now=now,
                )
            except SQLAlchemyError:
                session.rollback()
                logger.exception(
                    "Leadership update failed for %s/%s (athlete %s)",
                    distance.value,
                    category,
                    athlete_id,
                )
                result.leadership_errors.append(f"{distance.value}/{category}")
                continue
            result.leadership_changes.append(change)


async def sync_athlete(
    session: Session,
    athlete_id: int,
    options: Optional[SyncOptions] = None,
    *,
    now: Optional[datetime] = None,
    cooldown: Optional[CooldownPolicy] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SyncResult:
    """Sync one athlete's personal bests from Strava.

    Never raises for Strava or database trouble; those come back as a failed
    ``SyncResult``. A non-positive ``athlete_id`` raises ``SyncInputError``.
    """

    if not isinstance(athlete_id, int) or athlete_id <= 0:
        raise SyncInputError(f"Invalid athlete id: {athlete_id!r}")

    options = options or SyncOptions()
    cooldown = cooldown or CooldownPolicy()
    now = now or utcnow()

    try:
        profile = session.get(Profile, athlete_id)
        if profile is None:
            logger.warning("Sync requested for unknown athlete %s", athlete_id)
            return SyncResult.failed(
                "Profile not found. Please log in again.",
                "profile_missing",
                auth_required=True,
            )

        last_sync_at = as_utc(profile.last_sync_at)
        wait = cooldown.wait_minutes(last_sync_at, options, now)
        if wait is not None:
            return SyncResult(
                status=SyncStatus.SKIPPED,
                message=f"Please wait {wait} minute{'s' if wait > 1 else ''} before syncing again.",
                wait_minutes=wait,
            )

        buffer_seconds = (
            WEBHOOK_TOKEN_REFRESH_BUFFER_SECONDS
            if options.from_webhook
            else TOKEN_REFRESH_BUFFER_SECONDS
        )
        try:
            access_token = await ensure_fresh_token(
                session, profile, buffer_seconds=buffer_seconds, now=now, transport=transport
            )
        except StravaAuthError as exc:
            logger.warning("Token refresh failed for athlete %s: %s", athlete_id, exc)
            return SyncResult.failed(
                "Your Strava session expired. Please log in again.",
                "auth",
                error=str(exc),
                auth_required=True,
            )

        sex = profile.sex
        plan = plan_sync(last_sync_at, options, now)
        current_times = load_current_times(session, athlete_id)
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Database error while preparing sync for athlete %s", athlete_id)
        return SyncResult.failed(
            "Sync failed. Please try again later.", "persistence", error=str(exc)
        )

    api_calls = 0
    try:
        async with StravaClient(access_token, transport=transport) as client:
            try:
                outcome = await reconcile(client, plan, current_times)
            finally:
                api_calls = client.calls
    except StravaAuthError as exc:
        logger.warning("Strava rejected the token of athlete %s: %s", athlete_id, exc)
        return SyncResult.failed(
            "Your Strava session expired. Please log in again.",
            "auth",
            error=str(exc),
            api_calls=api_calls,
            auth_required=True,
        )
    except StravaAPIError as exc:
        logger.error("Strava activity list failed for athlete %s: %s", athlete_id, exc)
        return SyncResult.failed(
            "Could not reach Strava. Please try again later.",
            "upstream",
            error=str(exc),
            api_calls=api_calls,
        )
    except Exception as exc:
        logger.exception("Unexpected error while syncing athlete %s", athlete_id)
        return SyncResult.failed(
            "Sync failed. Please try again later.",
            "internal",
            error=str(exc),
            api_calls=api_calls,
        )

    result = SyncResult(
        status=SyncStatus.SUCCESS,
        message="",
        activities_examined=outcome.activities_examined,
        api_calls=api_calls,
        skipped_details=len(outcome.skipped),
    )
    _persist(session, athlete_id, sex, outcome, current_times, result, now)

    if not result.failed_writes:
        try:
            profile = session.get(Profile, athlete_id)
            if profile is not None:
                profile.last_sync_at = now
                profile.updated_at = now
                session.add(profile)
                session.commit()
        except SQLAlchemyError:
            session.rollback()
            logger.exception("Could not stamp last_sync_at for athlete %s", athlete_id)

    result.message = _summary_message(
        outcome, len(result.records), len(result.failed_writes)
    )
    logger.info(
        "Sync for athlete %s: %s (api calls %s, skipped details %s)",
        athlete_id,
        result.message,
        result.api_calls,
        result.skipped_details,
    )
    return result


__all__ = [
    "RecordDelta",
    "SyncOptions",
    "SyncResult",
    "SyncStatus",
    "plan_sync",
    "sync_athlete",
]
