"""Logging setup for hostsync.

Two output formats, selected by ``settings.log_format``:

- ``json``: one JSON object per line, for log shippers.
- ``text``: human-readable lines for a terminal.

Any non-standard attributes attached to a record (``logger.info(...,
extra={...})``) are carried through: under ``extra`` in JSON output and as
``key=value`` pairs in text output.
"""
from __future__ import annotations

import json
import logging
import socket
import sys
from datetime import datetime, timezone

from hostsync.config import settings

# Attributes every LogRecord has; anything else came in through ``extra``.
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}

_NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def _record_extras(record: logging.LogRecord) -> dict:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_ATTRS and not key.startswith("_")
    }


class HostsyncJSONFormatter(logging.Formatter):
    """Format records as single-line JSON."""

    def __init__(self, instance: str | None = None):
        super().__init__()
        self.instance = instance or socket.gethostname()

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": "hostsync",
            "instance": self.instance,
        }
        extras = _record_extras(record)
        if extras:
            payload["extra"] = extras
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class HostsyncTextFormatter(logging.Formatter):
    """Format records as ``time LEVEL [instance] logger: message``."""

    def __init__(self, instance: str | None = None):
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")
        self.instance = (instance or socket.gethostname())[:8]

    def format(self, record: logging.LogRecord) -> str:
        line = (
            f"{self.formatTime(record, self.datefmt)} {record.levelname:<7} "
            f"[{self.instance}] {record.name}: {record.getMessage()}"
        )
        extras = _record_extras(record)
        if extras:
            line += " " + " ".join(f"{k}={v}" for k, v in sorted(extras.items()))
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(instance: str | None = None) -> None:
    """Install a single stdout handler on the root logger."""
    if settings.log_format.lower() == "json":
        formatter: logging.Formatter = HostsyncJSONFormatter(instance=instance)
    else:
        formatter = HostsyncTextFormatter(instance=instance)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(settings.log_level.upper())

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
