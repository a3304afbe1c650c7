"""Logging setup for stageload.

All engine modules log through child loggers of the ``stageload``
namespace. The CLI configures a single stderr handler so that the report
written to stdout stays machine-readable.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import IO

# Record attributes copied into JSON output when a caller passes them via ``extra``.
_CONTEXT_FIELDS = ("run_state", "user_id", "target")


class _JsonFormatter(logging.Formatter):
    """One-line JSON formatter.

    Emits objects with keys timestamp, level, logger, message, plus any of
    the run context fields present on the record.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(
    level: int = logging.INFO,
    *,
    json_format: bool = False,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Configure and return the root ``stageload`` logger.

    Repeated calls only update the level of the existing handler.

    Args:
        level: Logging level, e.g. ``logging.DEBUG``.
        json_format: Emit one JSON object per line instead of plain text.
        stream: Destination stream. Defaults to ``sys.stderr``.

    Returns:
        The configured ``stageload`` logger.
    """
    logger = logging.getLogger("stageload")
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)

    if json_format:
        formatter: logging.Formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child logger, e.g. ``get_logger("engine.pool")`` -> ``stageload.engine.pool``."""
    return logging.getLogger(f"stageload.{name}")
