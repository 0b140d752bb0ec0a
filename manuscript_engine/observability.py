"""
Observability
=============

Logging setup for processes that host the engine (API server, CLI).

The engine modules only ever call logging.getLogger(__name__);
handler and format selection happens here, once per process.

Environment variables:
  - MANUSCRIPT_ENGINE_LOG_LEVEL: DEBUG|INFO|WARNING|ERROR|CRITICAL (default INFO)
  - MANUSCRIPT_ENGINE_LOG_FORMAT: plain|json (default plain)
"""

from __future__ import annotations
from typing import Optional
import json
import logging
import os
import sys


_LOGGING_INITIALIZED = False

_RESERVED_ATTRS = frozenset((
    "args", "created", "exc_info", "exc_text", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs", "msg", "name",
    "pathname", "process", "processName", "relativeCreated", "stack_info",
    "taskName", "thread", "threadName",
))

PLAIN_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per record, including any extra= fields."""

    def format(self, record: logging.LogRecord) -> str:
        data = {
            "time": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in data:
                continue
            try:
                json.dumps(value)
                data[key] = value
            except (TypeError, ValueError):
                data[key] = str(value)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False)


def init_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """Configure the root logger. Subsequent calls are no-ops."""
    global _LOGGING_INITIALIZED
    if _LOGGING_INITIALIZED:
        return

    resolved_level = (level or os.getenv("MANUSCRIPT_ENGINE_LOG_LEVEL") or "INFO").upper()
    resolved_format = (fmt or os.getenv("MANUSCRIPT_ENGINE_LOG_FORMAT") or "plain").lower()

    root = logging.getLogger()
    root.setLevel(getattr(logging, resolved_level, logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    if resolved_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    root.addHandler(handler)
    logging.captureWarnings(True)

    _LOGGING_INITIALIZED = True
