"""Engine, sessions and schema bootstrap."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine

from .config import DATABASE_URL, DB_RESET

logger = logging.getLogger(__name__)

_LOCAL_DB = Path(__file__).resolve().parents[2] / "data" / "runasty.db"


def _database_url() -> str:
    if DATABASE_URL:
        return DATABASE_URL
    _LOCAL_DB.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{_LOCAL_DB}"


_URL = _database_url()
# SQLite connections are shared with FastAPI's worker threads.
engine = create_engine(
    _URL,
    connect_args={"check_same_thread": False} if _URL.startswith("sqlite") else {},
    pool_pre_ping=not _URL.startswith("sqlite"),
)


def init_db() -> None:
    """Create missing tables; drop everything first when ``DB_RESET`` is set."""

    from .. import models  # noqa: F401 - register tables with SQLModel

    if DB_RESET:
        logger.warning("DB_RESET is set: dropping all tables")
        SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)


def check_db_connection() -> bool:
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        logger.exception("Database health check failed")
        return False


def get_session() -> Iterator[Session]:
    """FastAPI dependency that yields a database session."""

    with Session(engine) as session:
        yield session


__all__ = ["check_db_connection", "engine", "get_session", "init_db"]
