"""ASGI entry point: ``uvicorn runasty.app:app``."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from . import __version__
from .api import register_routes
from .core import (
    ALLOWED_CORS_ORIGINS,
    COOKIE_DOMAIN,
    COOKIE_SAMESITE,
    COOKIE_SECURE,
    SECRET_KEY,
    init_db,
)
from .core.config import ENVIRONMENT
from .core.logging import setup_logging

logger = logging.getLogger(__name__)

SESSION_COOKIE = "runasty_sid"


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Runasty API %s started (%s)", __version__, ENVIRONMENT)
    yield
    logger.info("Runasty API shutting down")


async def log_requests(request: Request, call_next):
    """Log every request with its status and duration."""

    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("Request failed: %s %s", request.method, request.url.path)
        raise
    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
    logger.info(
        "%s %s -> %s (%sms)",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
        extra={
            "extra_fields": {
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "process_time_ms": elapsed_ms,
            }
        },
    )
    return response


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title="Runasty API", version=__version__, lifespan=lifespan)

    app.middleware("http")(log_requests)
    # Browser calls carry the session cookie, so origins are listed explicitly.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_middleware(
        SessionMiddleware,
        secret_key=SECRET_KEY,
        session_cookie=SESSION_COOKIE,
        https_only=COOKIE_SECURE,
        same_site=COOKIE_SAMESITE,
        domain=COOKIE_DOMAIN,
    )

    register_routes(app)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("runasty.app:app", host="127.0.0.1", port=8000, reload=True)
