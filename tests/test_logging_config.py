from __future__ import annotations

import json
import logging

from nzbforge.logging import DebugQueryLogger, JsonFormatter, setup_logging


class ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        self.records.append(record)


def test_json_formatter_includes_extras() -> None:
    record = logging.LogRecord(
        name="nzbforge.releases",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="release_created",
        args=(),
        exc_info=None,
    )
    record.binary_id = 7
    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "release_created"
    assert payload["level"] == "info"
    assert payload["binary_id"] == 7


def test_setup_logging_single_execution() -> None:
    """Repeated setup calls should not duplicate log entries."""
    root = logging.getLogger()
    saved = (list(root.handlers), root.level, getattr(root, "_nzbforge_logging_configured", False))
    try:
        root._nzbforge_logging_configured = False  # type: ignore[attr-defined]
        setup_logging()
        setup_logging()
        assert len(root.handlers) == 1

        collector = ListHandler()
        root.addHandler(collector)
        logging.getLogger("nzbforge.test").info("once")
        assert [r.getMessage() for r in collector.records].count("once") == 1
    finally:
        root.handlers = saved[0]
        root.setLevel(saved[1])
        root._nzbforge_logging_configured = saved[2]  # type: ignore[attr-defined]


def test_debug_query_logger() -> None:
    logger = logging.getLogger("nzbforge.sql.test")
    logger.setLevel(logging.DEBUG)
    collector = ListHandler()
    logger.addHandler(collector)
    try:
        DebugQueryLogger(logger).log_query("SELECT 1", ())
    finally:
        logger.removeHandler(collector)
    [record] = collector.records
    assert record.getMessage() == "sql_query"
    assert record.statement == "SELECT 1"
