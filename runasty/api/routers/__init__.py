"""Aggregate API routers."""

from fastapi import APIRouter

from .profile import router as profile_router
from .rankings import router as rankings_router
from .strava import router as strava_router
from .system import router as system_router

ALL_ROUTERS: tuple[APIRouter, ...] = (
    system_router,
    rankings_router,
    profile_router,
    strava_router,
)

__all__ = ["ALL_ROUTERS"]
