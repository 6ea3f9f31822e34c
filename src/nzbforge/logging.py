"""Logging utilities for the binary and release passes."""

from __future__ import annotations

import json
import logging
import os
import sys
import threading
from typing import Any, Dict, Protocol

_LOG_RECORD_DEFAULTS = logging.LogRecord(
    name="", level=0, pathname="", lineno=0, msg="", args=(), exc_info=None
).__dict__.keys()


class JsonFormatter(logging.Formatter):
    """A minimal JSON formatter for structured logs."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname.lower(),
            "message": record.getMessage(),
        }
        extras = {
            k: v for k, v in record.__dict__.items() if k not in _LOG_RECORD_DEFAULTS
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        payload.update(extras)
        return json.dumps(payload, default=str)


class QueryLogger(Protocol):
    """Receives every SQL statement issued by a :class:`~nzbforge.db.Store`."""

    def log_query(self, statement: str, parameters: Any) -> None: ...


class DebugQueryLogger:
    """Log SQL statements at DEBUG level on the ``nzbforge.sql`` logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger("nzbforge.sql")

    def log_query(self, statement: str, parameters: Any) -> None:
        self.logger.debug(
            "sql_query",
            extra={"event": "sql_query", "statement": statement, "params": repr(parameters)},
        )


_LOG_LOCK = threading.Lock()


def setup_logging(level: str | None = None, *, debug_sql: bool = False) -> None:
    """Configure root logger for plain or structured JSON output."""
    root = logging.getLogger()
    if getattr(root, "_nzbforge_logging_configured", False):
        return
    with _LOG_LOCK:
        if getattr(root, "_nzbforge_logging_configured", False):
            return

        handler = logging.StreamHandler(sys.stdout)
        log_format = os.getenv("LOG_FORMAT", "plain")
        if log_format.lower() == "json":
            handler.setFormatter(JsonFormatter())
        else:
            handler.setFormatter(
                logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
            )

        root.handlers.clear()
        root.addHandler(handler)
        name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
        root.setLevel(getattr(logging, name, logging.INFO))

        # SQLAlchemy's own echo output duplicates the query logger.
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
        logging.getLogger("apscheduler").setLevel(logging.WARNING)
        if debug_sql:
            logging.getLogger("nzbforge.sql").setLevel(logging.DEBUG)

        root._nzbforge_logging_configured = True  # type: ignore[attr-defined]
