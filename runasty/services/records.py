"""Personal-record persistence with compare-and-swap writes."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..core.time import utcnow
from ..models import PersonalRecord
from .distances import Distance
from .reconciliation import Improvement

logger = logging.getLogger(__name__)


def load_current_times(session: Session, athlete_id: int) -> Dict[Distance, int]:
    """Stored best time per distance for one athlete."""

    rows = session.exec(
        select(PersonalRecord).where(PersonalRecord.athlete_id == athlete_id)
    ).all()
    times: Dict[Distance, int] = {}
    for row in rows:
        try:
            times[Distance(row.distance)] = row.time_seconds
        except ValueError:
            logger.warning("Ignoring record with unknown distance %r", row.distance)
    return times


def _update_if_faster(
    session: Session, athlete_id: int, improvement: Improvement, now: datetime
) -> int:
    result = session.exec(
        update(PersonalRecord)
        .where(
            PersonalRecord.athlete_id == athlete_id,
            PersonalRecord.distance == improvement.distance.value,
            PersonalRecord.time_seconds > improvement.time_seconds,
        )
        .values(
            time_seconds=improvement.time_seconds,
            achieved_at=improvement.achieved_at,
            activity_id=improvement.activity_id,
            updated_at=now,
        )
    )
    return result.rowcount


def _find_record(
    session: Session, athlete_id: int, distance: Distance
) -> Optional[PersonalRecord]:
    return session.exec(
        select(PersonalRecord).where(
            PersonalRecord.athlete_id == athlete_id,
            PersonalRecord.distance == distance.value,
        )
    ).first()


def write_if_faster(
    session: Session,
    athlete_id: int,
    improvement: Improvement,
    *,
    now: Optional[datetime] = None,
) -> bool:
    """Store ``improvement`` unless an equal or faster time is already stored.

    The update is conditional on the stored time being slower, so two syncs
    racing on the same row can never make it worse. Returns True when a row
    was written.
    """

    now = now or utcnow()
    if _update_if_faster(session, athlete_id, improvement, now):
        session.commit()
        return True

    if _find_record(session, athlete_id, improvement.distance) is not None:
        session.commit()
        return False

    session.add(
        PersonalRecord(
            athlete_id=athlete_id,
            distance=improvement.distance.value,
            time_seconds=improvement.time_seconds,
            achieved_at=improvement.achieved_at,
            activity_id=improvement.activity_id,
            created_at=now,
            updated_at=now,
        )
    )
    try:
        session.commit()
        return True
    except IntegrityError:
        # Another sync inserted the row first; fall back to the conditional update.
        session.rollback()
        written = _update_if_faster(session, athlete_id, improvement, now) > 0
        session.commit()
        return written


__all__ = ["load_current_times", "write_if_faster"]
