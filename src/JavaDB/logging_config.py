"""
Structured Logging Utilities

Centralizes logging setup for the crawler and builder: a terse console handler
for operators and an optional JSON-lines file handler for unattended scheduled
runs, where the structured ``extra`` fields attached by the crawler (unit path,
failure counts) are what gets inspected after the fact.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "JavaDB"

# Attributes every LogRecord carries; anything else came from ``extra=``.
_RESERVED_RECORD_ATTRS = frozenset(
    vars(logging.makeLogRecord({})).keys() | {"message", "asctime", "correlation_id"}
)


def generate_correlation_id() -> str:
    """Create a short identifier that links the log entries of one command run.

    Returns:
        Twelve character hexadecimal identifier.

    Examples:
        >>> len(generate_correlation_id())
        12
    """
    return uuid.uuid4().hex[:12]


class JSONFormatter(logging.Formatter):
    """Formatter emitting one JSON object per record.

    Examples:
        >>> formatter = JSONFormatter()
        >>> isinstance(formatter.format(logging.makeLogRecord({'msg': 'test'})), str)
        True
    """

    def format(self, record: logging.LogRecord) -> str:
        """Serialize a logging record into a JSON line.

        Args:
            record: Log record emitted by crawler or builder components.

        Returns:
            JSON string including any ``extra`` fields attached to the record.
        """
        now = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_obj = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED_RECORD_ATTRS and not key.startswith("_"):
                log_obj[key] = value
        if record.exc_info:
            log_obj["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_obj, default=str)


class _CorrelationFilter(logging.Filter):
    def __init__(self, correlation_id: str) -> None:
        super().__init__()
        self.correlation_id = correlation_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = self.correlation_id
        return True


def setup_logging(
    level: int | str = logging.INFO,
    log_file: Optional[Path] = None,
    *,
    correlation_id: Optional[str] = None,
) -> logging.Logger:
    """Configure console and optional JSON file logging for the ``JavaDB`` logger.

    Repeated calls replace the handlers installed by previous calls instead of
    stacking them.

    Args:
        level: Logging level name or number.
        log_file: When given, JSON lines are appended to this file.
        correlation_id: Identifier stamped on every record; generated when omitted.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if getattr(handler, "_javadb_managed", False):
            logger.removeHandler(handler)
            handler.close()

    correlation = _CorrelationFilter(correlation_id or generate_correlation_id())

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(message)s", "%Y-%m-%dT%H:%M:%S")
    )
    stream_handler.addFilter(correlation)
    stream_handler._javadb_managed = True  # type: ignore[attr-defined]
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        file_handler.addFilter(correlation)
        file_handler._javadb_managed = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    return logger


__all__ = ["setup_logging", "generate_correlation_id", "JSONFormatter", "ROOT_LOGGER_NAME"]
