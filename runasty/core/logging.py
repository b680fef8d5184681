"""
Logging configuration.

``LOG_FORMAT=json`` (forced when ``ENVIRONMENT=production``) writes one JSON
object per line with ``timestamp``, ``level``, ``logger``, ``message``,
``module``, ``function`` and ``line``, plus ``exception`` when a traceback is
attached. Anything passed as ``extra={"extra_fields": {...}}`` is merged into
the top level; the request middleware uses it for ``method``, ``path``,
``status_code`` and ``process_time_ms``, and sync runs log the athlete id in
the message text.

Otherwise records are plain text: ``<asctime> - <logger> - <LEVEL> - <message>``.

Both go to stdout. SQLAlchemy engine, httpx and httpcore are held at WARNING.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict

from .config import ENVIRONMENT, LOG_FORMAT, LOG_LEVEL
from .time import utcnow


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data)


def setup_logging() -> logging.Logger:
    """Configure application-wide logging."""

    log_level = getattr(logging, LOG_LEVEL.upper(), logging.INFO)

    if LOG_FORMAT == "json" or ENVIRONMENT == "production":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return root_logger


__all__ = ["JSONFormatter", "setup_logging"]
