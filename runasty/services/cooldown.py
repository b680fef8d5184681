"""Cooldown policy between two syncs of the same athlete.

The only state is ``profile.last_sync_at``, so the policy holds across server
instances.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional

from ..core.config import SYNC_AUTO_COOLDOWN_MINUTES, SYNC_MANUAL_COOLDOWN_MINUTES
from ..core.time import as_utc

if TYPE_CHECKING:
    from .sync import SyncOptions


@dataclass(frozen=True)
class CooldownPolicy:
    manual_minutes: int = SYNC_MANUAL_COOLDOWN_MINUTES
    auto_minutes: int = SYNC_AUTO_COOLDOWN_MINUTES

    def threshold(self, options: "SyncOptions") -> Optional[timedelta]:
        """Minimum gap for this kind of sync; None when it bypasses cooldown."""

        if options.force or options.from_webhook:
            return None
        minutes = self.auto_minutes if options.is_auto_sync else self.manual_minutes
        if minutes <= 0:
            return None
        return timedelta(minutes=minutes)

    def remaining(
        self,
        last_sync_at: Optional[datetime],
        options: "SyncOptions",
        now: datetime,
    ) -> Optional[timedelta]:
        threshold = self.threshold(options)
        last_sync_at = as_utc(last_sync_at)
        if threshold is None or last_sync_at is None:
            return None
        left = threshold - (now - last_sync_at)
        if left <= timedelta(0):
            return None
        return left

    def wait_minutes(
        self,
        last_sync_at: Optional[datetime],
        options: "SyncOptions",
        now: datetime,
    ) -> Optional[int]:
        """Whole minutes to wait (rounded up), or None when a sync may run."""

        left = self.remaining(last_sync_at, options, now)
        if left is None:
            return None
        return max(1, math.ceil(left.total_seconds() / 60))


__all__ = ["CooldownPolicy"]
