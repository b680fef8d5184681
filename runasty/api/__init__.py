"""API assembly helpers."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..core import RunastyError, StravaAuthError
from .routers import ALL_ROUTERS

logger = logging.getLogger(__name__)


async def _runasty_error_handler(request: Request, exc: RunastyError) -> JSONResponse:
    logger.error("Unhandled %s on %s: %s", type(exc).__name__, request.url.path, exc)
    if isinstance(exc, StravaAuthError):
        return JSONResponse({"error": "Please log in again."}, status_code=401)
    return JSONResponse({"error": "Upstream service error"}, status_code=502)


def register_routes(app: FastAPI) -> None:
    """Attach all application routers and error handlers to the given app."""

    for router in ALL_ROUTERS:
        app.include_router(router)
    app.add_exception_handler(RunastyError, _runasty_error_handler)


__all__ = ["register_routes"]
