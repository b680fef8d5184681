"""Read models for the ranking, current leaders and athlete profile pages."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlmodel import Session, select

from ..core.time import as_utc, isoformat, utcnow
from ..models import OVERALL, LeadershipInterval, PersonalRecord, Profile
from .distances import DISTANCES, Distance, format_time
from .leadership import open_interval

SECONDS_PER_DAY = 24 * 60 * 60


def _athlete_dict(profile: Optional[Profile], athlete_id: int) -> Dict[str, Any]:
    return {
        "athlete_id": athlete_id,
        "name": profile.display_name if profile else f"Athlete {athlete_id}",
        "username": profile.username if profile else None,
        "avatar_url": profile.avatar_url if profile else None,
        "sex": profile.sex if profile else None,
    }


def ranking(
    session: Session,
    distance: Distance,
    *,
    category: str = OVERALL,
    limit: int = 50,
) -> List[Dict[str, Any]]:
    """Records for one distance, fastest first, with athlete details."""

    statement = (
        select(PersonalRecord, Profile)
        .join(Profile, Profile.athlete_id == PersonalRecord.athlete_id)
        .where(PersonalRecord.distance == distance.value)
    )
    if category != OVERALL:
        statement = statement.where(Profile.sex == category)
    statement = statement.order_by(
        PersonalRecord.time_seconds.asc(), PersonalRecord.updated_at.asc()
    ).limit(limit)

    entries: List[Dict[str, Any]] = []
    for position, (record, profile) in enumerate(session.exec(statement).all(), start=1):
        entries.append(
            {
                "position": position,
                **_athlete_dict(profile, record.athlete_id),
                "time_seconds": record.time_seconds,
                "time": format_time(record.time_seconds),
                "achieved_at": isoformat(record.achieved_at),
                "activity_id": record.activity_id,
            }
        )
    return entries


def current_leaders(
    session: Session, *, category: str = OVERALL, now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """The open leadership interval of every distance, if any."""

    now = now or utcnow()
    leaders: List[Dict[str, Any]] = []
    for distance in Distance:
        interval = open_interval(session, distance, category)
        if interval is None:
            leaders.append({"distance": distance.value, "leader": None})
            continue
        started_at = as_utc(interval.started_at)
        leaders.append(
            {
                "distance": distance.value,
                "label": DISTANCES[distance].label,
                "leader": _athlete_dict(
                    session.get(Profile, interval.athlete_id), interval.athlete_id
                ),
                "record_time_seconds": interval.record_time_seconds,
                "time": format_time(interval.record_time_seconds),
                "started_at": isoformat(started_at),
                "held_for_seconds": int((now - started_at).total_seconds()),
            }
        )
    return leaders


def _reign_days(interval: LeadershipInterval, now: datetime) -> int:
    end = as_utc(interval.ended_at) or now
    elapsed = (end - as_utc(interval.started_at)).total_seconds()
    return max(0, math.ceil(elapsed / SECONDS_PER_DAY))


def athlete_stats(
    session: Session, athlete_id: int, *, now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """Per-distance record, position, percentile and leadership history."""

    now = now or utcnow()
    stats: List[Dict[str, Any]] = []
    for distance in Distance:
        ordered = session.exec(
            select(PersonalRecord)
            .where(PersonalRecord.distance == distance.value)
            .order_by(PersonalRecord.time_seconds.asc(), PersonalRecord.updated_at.asc())
        ).all()
        total = len(ordered)
        position = next(
            (idx for idx, rec in enumerate(ordered, start=1) if rec.athlete_id == athlete_id),
            None,
        )
        record = ordered[position - 1] if position else None
        # Share of athletes this one is faster than.
        percentile = round((total - position) / total * 100) if position else None

        reigns = session.exec(
            select(LeadershipInterval)
            .where(
                LeadershipInterval.athlete_id == athlete_id,
                LeadershipInterval.distance == distance.value,
                LeadershipInterval.category == OVERALL,
            )
            .order_by(LeadershipInterval.started_at.desc())
        ).all()

        stats.append(
            {
                "distance": distance.value,
                "label": DISTANCES[distance].label,
                "time_seconds": record.time_seconds if record else None,
                "time": format_time(record.time_seconds) if record else None,
                "achieved_at": isoformat(record.achieved_at) if record else None,
                "activity_id": record.activity_id if record else None,
                "position": position,
                "total_athletes": total,
                "percentile": percentile,
                "is_leader": any(reign.ended_at is None for reign in reigns),
                "total_leader_days": sum(_reign_days(reign, now) for reign in reigns),
                "leadership_history": [
                    {
                        "started_at": isoformat(reign.started_at),
                        "ended_at": isoformat(reign.ended_at),
                        "record_time_seconds": reign.record_time_seconds,
                    }
                    for reign in reigns
                ],
            }
        )
    return stats


# (max position, tier) from best to worst; anything beyond is "runner".
_POSITION_TIERS = ((3, "podium"), (10, "top10"), (20, "top20"), (50, "top50"))


def athlete_level(stats: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Name a tier from the athlete's best ranking position.

    ``stats`` is the output of ``athlete_stats``. Leading any distance wins
    over every position-based tier.
    """

    ranked = [row for row in stats if row["position"] is not None]
    if not ranked:
        return {
            "tier": "new",
            "level": "New here",
            "description": "Log your first run!",
            "best_position": None,
        }

    best = min(ranked, key=lambda row: row["position"])
    leader = next((row for row in ranked if row["position"] == 1), None)
    if leader is not None:
        label = leader["label"]
        return {
            "tier": "leader",
            "level": f"King of the {label}",
            "description": f"Leads the {label} ranking",
            "best_position": {"distance": leader["distance"], "position": 1},
        }

    position = best["position"]
    label = best["label"]
    tier = next((name for limit, name in _POSITION_TIERS if position <= limit), "runner")
    return {
        "tier": tier,
        "level": f"Top {position} in the {label}",
        "description": f"Position #{position} in the {label}",
        "best_position": {"distance": best["distance"], "position": position},
    }


__all__ = ["athlete_level", "athlete_stats", "current_leaders", "ranking"]
