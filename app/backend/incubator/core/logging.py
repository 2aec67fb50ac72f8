"""Logging setup for the workspace backend."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

_LOGGER_PREFIX = "incubator"

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


class JsonLineFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Structured extra fields passed via ``extra=...``.
        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = val
        if record.exc_info and record.exc_info[1] is not None:
            payload["exc_type"] = type(record.exc_info[1]).__name__
            payload["exc_message"] = str(record.exc_info[1])
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the incubator namespace."""

    if name.startswith(f"{_LOGGER_PREFIX}.") or name == _LOGGER_PREFIX:
        return logging.getLogger(name)
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def configure_logging(level: str = "INFO", *, json_output: bool = False) -> logging.Logger:
    """Install a single stream handler on the namespace logger.

    Calling this again replaces the handler instead of stacking a new one,
    so app factories used in tests can call it freely.
    """

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level.upper())
    for handler in list(root.handlers):
        if getattr(handler, "_incubator_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler._incubator_handler = True  # type: ignore[attr-defined]
    if json_output:
        handler.setFormatter(JsonLineFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(handler)
    return root
