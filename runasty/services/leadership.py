"""
Leadership ledger.

Keeps one open interval per (distance, category): the athlete currently holding
the best time. A new leader closes the previous interval and opens their own in
the same commit; a leader improving their own time updates the open row in place.
The partial unique index on open rows rejects a second concurrent opener, which
then re-reads and re-applies its decision.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..core.time import utcnow
from ..models import OVERALL, LeadershipInterval, PersonalRecord, Profile
from .distances import Distance

logger = logging.getLogger(__name__)

SEX_CATEGORIES = ("M", "F")
CATEGORIES = (OVERALL, *SEX_CATEGORIES)


class LeadershipOutcome(str, Enum):
    OPENED = "opened"
    EXTENDED = "extended"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class LeadershipChange:
    distance: Distance
    category: str
    athlete_id: int
    outcome: LeadershipOutcome
    record_time_seconds: int
    previous_leader_id: Optional[int] = None


def categories_for(sex: Optional[str]) -> List[str]:
    """Ledgers an athlete competes in: overall plus their sex, when declared."""

    if sex in SEX_CATEGORIES:
        return [OVERALL, sex]
    return [OVERALL]


def open_interval(
    session: Session,
    distance: Distance,
    category: str = OVERALL,
    *,
    lock: bool = False,
) -> Optional[LeadershipInterval]:
    statement = select(LeadershipInterval).where(
        LeadershipInterval.distance == distance.value,
        LeadershipInterval.category == category,
        LeadershipInterval.ended_at.is_(None),
    )
    if lock:
        statement = statement.with_for_update()
    return session.exec(statement).first()


def _hand_over(
    session: Session,
    current: Optional[LeadershipInterval],
    distance: Distance,
    category: str,
    athlete_id: int,
    record_time: int,
    now: datetime,
) -> Optional[int]:
    previous_leader_id = None
    if current is not None:
        current.ended_at = now
        session.add(current)
        previous_leader_id = current.athlete_id
        # Close before opening so the open-row index never sees two rows.
        session.flush()
    session.add(
        LeadershipInterval(
            athlete_id=athlete_id,
            distance=distance.value,
            category=category,
            started_at=now,
            record_time_seconds=record_time,
        )
    )
    session.commit()
    return previous_leader_id


def _apply(
    session: Session,
    distance: Distance,
    athlete_id: int,
    new_time: int,
    category: str,
    now: datetime,
) -> LeadershipChange:
    current = open_interval(session, distance, category, lock=True)

    if current is not None and new_time >= current.record_time_seconds:
        session.commit()
        return LeadershipChange(
            distance, category, athlete_id, LeadershipOutcome.UNCHANGED, new_time
        )

    if current is not None and current.athlete_id == athlete_id:
        current.record_time_seconds = new_time
        session.add(current)
        session.commit()
        return LeadershipChange(
            distance, category, athlete_id, LeadershipOutcome.EXTENDED, new_time
        )

    previous = _hand_over(session, current, distance, category, athlete_id, new_time, now)
    logger.info(
        "New %s leader for %s: athlete %s (%ss), previous %s",
        category,
        distance.value,
        athlete_id,
        new_time,
        previous,
    )
    return LeadershipChange(
        distance,
        category,
        athlete_id,
        LeadershipOutcome.OPENED,
        new_time,
        previous_leader_id=previous,
    )


def record_possible_leadership_change(
    session: Session,
    distance: Distance,
    athlete_id: int,
    new_time: int,
    *,
    category: str = OVERALL,
    now: Optional[datetime] = None,
) -> LeadershipChange:
    """Apply a confirmed personal best to the leadership ledger.

    Re-applying the same time for the current leader is a no-op, so the call is
    safe to repeat. Store errors other than a lost race propagate.
    """

    now = now or utcnow()
    try:
        return _apply(session, distance, athlete_id, new_time, category, now)
    except IntegrityError:
        session.rollback()
        logger.info(
            "Concurrent leadership change on %s/%s, re-applying", distance.value, category
        )
        return _apply(session, distance, athlete_id, new_time, category, now)


def best_record(
    session: Session, distance: Distance, category: str = OVERALL
) -> Optional[PersonalRecord]:
    """Fastest stored record for a distance, optionally restricted by sex."""

    statement = select(PersonalRecord).where(PersonalRecord.distance == distance.value)
    if category != OVERALL:
        statement = statement.join(
            Profile, Profile.athlete_id == PersonalRecord.athlete_id
        ).where(Profile.sex == category)
    statement = statement.order_by(
        PersonalRecord.time_seconds.asc(), PersonalRecord.updated_at.asc()
    )
    return session.exec(statement.limit(1)).first()


def realign_leaders(
    session: Session, *, now: Optional[datetime] = None
) -> List[LeadershipChange]:
    """Make every ledger's open interval match the fastest stored record.

    Repairs ledgers that fell behind the record table (a crash between the two
    writes, a deleted account, or data loaded by hand).
    """

    now = now or utcnow()
    changes: List[LeadershipChange] = []
    for distance in Distance:
        for category in CATEGORIES:
            best = best_record(session, distance, category)
            current = open_interval(session, distance, category, lock=True)
            if best is None:
                if current is not None:
                    current.ended_at = now
                    session.add(current)
                    session.commit()
                    logger.info("Closed %s/%s: no records left", distance.value, category)
                continue
            if current is not None and current.athlete_id == best.athlete_id:
                if current.record_time_seconds != best.time_seconds:
                    current.record_time_seconds = best.time_seconds
                    session.add(current)
                    session.commit()
                    changes.append(
                        LeadershipChange(
                            distance,
                            category,
                            best.athlete_id,
                            LeadershipOutcome.EXTENDED,
                            best.time_seconds,
                        )
                    )
                continue
            previous = _hand_over(
                session, current, distance, category, best.athlete_id, best.time_seconds, now
            )
            changes.append(
                LeadershipChange(
                    distance,
                    category,
                    best.athlete_id,
                    LeadershipOutcome.OPENED,
                    best.time_seconds,
                    previous_leader_id=previous,
                )
            )
    session.commit()
    return changes


__all__ = [
    "CATEGORIES",
    "LeadershipChange",
    "LeadershipOutcome",
    "best_record",
    "categories_for",
    "open_interval",
    "realign_leaders",
    "record_possible_leadership_change",
]
