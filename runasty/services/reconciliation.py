"""
Record reconciliation.

Turns a window of Strava activity history into the set of personal bests that
improve on what is stored. Nothing here touches the database: callers pass the
stored times in and persist the returned improvements themselves.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional

from ..schemas import StravaActivity, StravaActivityDetail
from ..strava_client import Fetched, Skipped, StravaClient
from .distances import SHORTEST_DISTANCE_METERS, Distance, distance_for_effort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncPlan:
    """How much history to read and how many detail calls to spend."""

    after: int
    detail_cap: int
    per_page: int = 50
    max_pages: int = 1
    first_sync: bool = False


@dataclass(frozen=True)
class Improvement:
    distance: Distance
    time_seconds: int
    achieved_at: Optional[datetime]
    activity_id: int


@dataclass
class ReconciliationResult:
    improvements: Dict[Distance, Improvement] = field(default_factory=dict)
    activities_fetched: int = 0
    activities_examined: int = 0
    detail_calls: int = 0
    skipped: List[Skipped] = field(default_factory=list)


def is_pr_candidate(activity: StravaActivity) -> bool:
    """Runs that Strava flagged, or long enough to contain a target effort."""

    if not activity.is_run:
        return False
    return (
        activity.pr_count > 0
        or activity.achievement_count > 0
        or activity.distance >= SHORTEST_DISTANCE_METERS
    )


def rank_candidates(activities: Iterable[StravaActivity]) -> List[StravaActivity]:
    """Filter to PR candidates, most PRs first (stable for ties)."""

    candidates = [activity for activity in activities if is_pr_candidate(activity)]
    return sorted(candidates, key=lambda activity: activity.pr_count, reverse=True)


def collect_improvements(
    detail: StravaActivityDetail,
    current_times: Mapping[Distance, int],
    best: Dict[Distance, Improvement],
) -> None:
    """Fold one activity's best efforts into ``best``.

    An effort is kept only when it beats both the stored time and the best
    candidate already found in this run.
    """

    for effort in detail.best_efforts:
        distance = distance_for_effort(effort.name)
        if distance is None:
            continue
        stored = current_times.get(distance)
        if stored is not None and effort.elapsed_time >= stored:
            continue
        found = best.get(distance)
        if found is not None and effort.elapsed_time >= found.time_seconds:
            continue
        activity_id = effort.activity.id if effort.activity else detail.id
        best[distance] = Improvement(
            distance=distance,
            time_seconds=effort.elapsed_time,
            achieved_at=effort.start_date,
            activity_id=activity_id,
        )


async def reconcile(
    client: StravaClient,
    plan: SyncPlan,
    current_times: Mapping[Distance, int],
) -> ReconciliationResult:
    """Find personal-best improvements in the activities selected by ``plan``.

    Raises ``StravaAPIError`` only when the activity list itself cannot be
    fetched. Detail failures are recorded in ``skipped`` and still count
    against ``plan.detail_cap``.
    """

    activities = await client.list_activities_after(
        plan.after, per_page=plan.per_page, max_pages=plan.max_pages
    )
    candidates = rank_candidates(activities)
    result = ReconciliationResult(
        activities_fetched=len(activities),
        activities_examined=len(candidates),
    )
    logger.info(
        "Reconciling %s candidate runs out of %s activities (cap %s)",
        len(candidates),
        len(activities),
        plan.detail_cap,
    )

    for activity in candidates:
        if result.detail_calls >= plan.detail_cap:
            break
        outcome = await client.get_activity_detail(activity.id)
        result.detail_calls += 1
        if isinstance(outcome, Fetched):
            collect_improvements(outcome.detail, current_times, result.improvements)
        else:
            result.skipped.append(outcome)

    if result.skipped:
        logger.info(
            "Skipped %s activity details: %s",
            len(result.skipped),
            ", ".join(f"{s.activity_id}={s.reason}" for s in result.skipped),
        )
    return result


__all__ = [
    "Improvement",
    "ReconciliationResult",
    "SyncPlan",
    "collect_improvements",
    "is_pr_candidate",
    "rank_candidates",
    "reconcile",
]
