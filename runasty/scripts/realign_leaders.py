"""Repair leadership ledgers so each open interval matches the fastest record."""

from __future__ import annotations

import logging

from sqlmodel import Session, SQLModel

from .. import models  # noqa: F401 - ensure models are registered with SQLModel
from ..core import engine
from ..core.logging import setup_logging
from ..services.leadership import realign_leaders

logger = logging.getLogger(__name__)


def main() -> int:
    setup_logging()
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        changes = realign_leaders(session)

    for change in changes:
        logger.info(
            "%s/%s: athlete %s %s (%ss), previous leader %s",
            change.distance.value,
            change.category,
            change.athlete_id,
            change.outcome.value,
            change.record_time_seconds,
            change.previous_leader_id,
        )
    if not changes:
        logger.info("All leaders already match the records")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
