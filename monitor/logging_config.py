"""Structured logging setup for the monitor service.

Two output formats are supported, selected by ``settings.log_format``:

- ``json``: one JSON object per line, suitable for log shippers
- ``text``: human-readable single-line records for local runs
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from monitor.config import settings

SERVICE_NAME = "vm-monitor"

# Attributes present on every LogRecord; anything else came in via `extra=`
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime"}

# Third-party loggers that are chatty at INFO
_NOISY_LOGGERS = ("asyncssh", "httpx", "httpcore", "uvicorn.access")


def _extra_fields(record: logging.LogRecord) -> dict:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


class MonitorJSONFormatter(logging.Formatter):
    """Render log records as single-line JSON documents."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": SERVICE_NAME,
        }
        extra = _extra_fields(record)
        if extra:
            payload["extra"] = extra
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class MonitorTextFormatter(logging.Formatter):
    """Human-readable formatter."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def setup_logging() -> None:
    """Configure the root logger from settings.

    Replaces any previously installed handlers so repeated calls (tests,
    uvicorn reloads) do not duplicate output.
    """
    if settings.log_format.lower() == "json":
        formatter: logging.Formatter = MonitorJSONFormatter()
    else:
        formatter = MonitorTextFormatter()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(settings.log_level.upper())

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
