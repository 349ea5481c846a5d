"""NAPWATCH — Structured JSON Logging.

All loggers live under the ``napwatch`` namespace and share one stdout
handler attached to the namespace root. Per-platform and per-report context
travels in ``extra`` and is written as top-level JSON keys.
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

from app.config import settings

ROOT_LOGGER = "napwatch"

# ``extra`` keys copied into the JSON line
CONTEXT_FIELDS = ("platform", "report_id", "duration_ms", "score", "alert_type")


class JSONFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, context."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            {key: getattr(record, key) for key in CONTEXT_FIELDS if hasattr(record, key)}
        )
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


def _configure_root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        root.addHandler(handler)
        root.propagate = False
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    return root


def get_logger(name: str) -> logging.Logger:
    """Child logger ``napwatch.<name>``; records propagate to the shared handler."""
    _configure_root()
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


@contextmanager
def log_duration(logger: logging.Logger, message: str, **context) -> Iterator[dict]:
    """Log ``message`` with ``duration_ms`` once the block exits.

    The yielded dict can be filled inside the block; its keys are merged into
    the log context (e.g. the report id only known at the end).
    """
    started = time.monotonic()
    extra = dict(context)
    yield extra
    extra["duration_ms"] = round((time.monotonic() - started) * 1000)
    logger.info(message, extra=extra)
