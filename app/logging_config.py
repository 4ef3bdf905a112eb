"""
Process-wide logging setup.

Production runs emit one JSON object per line; ``DEBUG=true`` switches
to a pipe-separated human format.  Both carry the ``request_id`` of the
request being served, taken from ``request_id_ctx``.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")
"""ID of the request being served; ``"-"`` outside a request."""

_TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(request_id)s | %(message)s"

_QUIET_LOGGERS = ("httpx", "httpcore", "redis", "multipart", "uvicorn.access")


class _RequestIDFilter(logging.Filter):
    """Stamp ``request_id`` onto records that do not carry one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_ctx.get()  # type: ignore[attr-defined]
        return True


class _JsonFormatter(logging.Formatter):
    """Serialise a record as a single JSON line.

    Messages are escaped by ``json.dumps``, so quotes or newlines in
    a log message never break the line format.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", "-"),
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", *, json_format: bool = False) -> None:
    """Install a single stdout handler on the root logger.

    Safe to call more than once; earlier handlers are replaced.

    Args:
        level: Level name such as ``"INFO"``; unknown names fall
            back to ``INFO``.
        json_format: Emit JSON lines instead of the text format.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        _JsonFormatter() if json_format else logging.Formatter(_TEXT_FORMAT)
    )
    handler.addFilter(_RequestIDFilter())

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))
