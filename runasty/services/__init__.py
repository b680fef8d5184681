"""Service layer helpers."""

from .distances import Distance, distance_for_effort, format_time, parse_distance
from .leadership import realign_leaders, record_possible_leadership_change
from .reconciliation import reconcile
from .sync import SyncOptions, SyncResult, SyncStatus, sync_athlete

__all__ = [
    "Distance",
    "SyncOptions",
    "SyncResult",
    "SyncStatus",
    "distance_for_effort",
    "format_time",
    "parse_distance",
    "realign_leaders",
    "reconcile",
    "record_possible_leadership_change",
    "sync_athlete",
]
