"""Runasty: Strava personal-best leaderboard with leadership history."""

__version__ = "0.1.0"
