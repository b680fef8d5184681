"""Database model exports."""

from .leadership import OVERALL, LeadershipInterval
from .profile import Profile
from .record import PersonalRecord

__all__ = [
    "LeadershipInterval",
    "OVERALL",
    "PersonalRecord",
    "Profile",
]
