"""Logging setup: correlation-aware filter and a one-line JSON formatter."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .correlation import get_correlation_id

ROOT_LOGGER = "corehub"
_TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [%(correlation_id)s] %(message)s"


class CorrelationIdFilter(logging.Filter):
    """Stamps ``record.correlation_id`` from the current context ("-" when unset)."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "correlation_id", None):
            record.correlation_id = get_correlation_id() or "-"
        return True


class JsonLogFormatter(logging.Formatter):
    """Emits JSON log entries with level, logger, message and correlation_id."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None) or get_correlation_id(),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(
    level: str | int = "INFO",
    *,
    json_format: bool = False,
    stream: Any = None,
) -> logging.Logger:
    """Install a single stream handler on the ``corehub`` logger.

    Calling it again replaces the handler it installed before.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, "_corehub_handler", False):
            logger.removeHandler(handler)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler._corehub_handler = True  # type: ignore[attr-defined]
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(JsonLogFormatter() if json_format else logging.Formatter(_TEXT_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(level if isinstance(level, int) else level.upper())
    return logger
