"""Target race distances and the Strava best-effort labels that map to them."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class Distance(str, Enum):
    SHORT = "5k"
    MEDIUM = "10k"
    LONG = "21k"


@dataclass(frozen=True)
class DistanceSpec:
    key: Distance
    meters: float
    effort_name: str
    label: str


DISTANCES: Dict[Distance, DistanceSpec] = {
    Distance.SHORT: DistanceSpec(Distance.SHORT, 5000.0, "5K", "5K"),
    Distance.MEDIUM: DistanceSpec(Distance.MEDIUM, 10000.0, "10K", "10K"),
    Distance.LONG: DistanceSpec(Distance.LONG, 21097.5, "Half-Marathon", "Half marathon"),
}

# Exact, case-sensitive: Strava's own labels.
EFFORT_NAME_TO_DISTANCE: Dict[str, Distance] = {
    spec.effort_name: key for key, spec in DISTANCES.items()
}

SHORTEST_DISTANCE_METERS = min(spec.meters for spec in DISTANCES.values())


def distance_for_effort(name: Optional[str]) -> Optional[Distance]:
    """Map a best-effort label to a target distance, or None when untracked."""

    if name is None:
        return None
    return EFFORT_NAME_TO_DISTANCE.get(name)


def parse_distance(raw: str) -> Distance:
    """Parse a distance key such as ``"5k"``; raises ValueError otherwise."""

    try:
        return Distance(raw)
    except ValueError as exc:
        valid = ", ".join(d.value for d in Distance)
        raise ValueError(f"Unknown distance '{raw}' (expected one of {valid})") from exc


def format_time(seconds: int) -> str:
    """Render a duration as ``M:SS`` or ``H:MM:SS``."""

    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


__all__ = [
    "DISTANCES",
    "Distance",
    "DistanceSpec",
    "EFFORT_NAME_TO_DISTANCE",
    "SHORTEST_DISTANCE_METERS",
    "distance_for_effort",
    "format_time",
    "parse_distance",
]
