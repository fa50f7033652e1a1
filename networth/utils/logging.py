# networth/utils/logging.py
"""
Logging configuration for the net-worth engine.

This module provides centralized logging setup with:
- Environment-based log levels
- Valuation cycle id on every record emitted during a refresh
- JSON format option for log aggregation
- Suppression of noisy third-party library logs

Usage:
    from networth.utils import setup_logging

    setup_logging()

Log Levels:
    DEBUG   - Cache hits/misses, superseded cycles
    INFO    - Cycle published, cache cleared
    WARNING - Stale fallback served, degraded valuation inputs
    ERROR   - FX rate defaulted, collaborator failures

Environment Configuration:
    LOG_LEVEL=DEBUG       # Development - see everything
    LOG_FORMAT=json       # Machine-readable logs
    LOG_FORMAT=text       # Human-readable logs (default)
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

from networth.config import settings
from networth.utils.context import get_cycle_id

# =============================================================================
# CONSTANTS
# =============================================================================

# timestamp | level | cycle_id | logger_name | message
DEFAULT_TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(cycle_id)s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NO_CYCLE_ID = "-"

# Set to WARNING to reduce noise
NOISY_LOGGERS = [
    "yfinance",
    "urllib3",
    "urllib3.connectionpool",
    "requests",
    "peewee",
    "asyncio",
    "sqlalchemy.engine",
]

# Attributes every LogRecord carries; anything else was passed via extra=
_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "cycle_id", "message", "taskName",
}


# =============================================================================
# CYCLE ID FILTER
# =============================================================================

class CycleIdFilter(logging.Filter):
    """
    Logging filter that adds the valuation cycle id to log records.

    Access in format string: %(cycle_id)s
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.cycle_id = get_cycle_id() or NO_CYCLE_ID
        return True


# =============================================================================
# JSON FORMATTER
# =============================================================================

class JsonFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Output format:
    {
        "timestamp": "2024-01-15T10:30:00.123Z",
        "level": "WARNING",
        "logger": "networth.services.market_data.price_cache",
        "cycle_id": "cycle-3",
        "message": "Serving stale price for VWRL.L from 2024-01-12",
        "extra": { ... }
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "cycle_id": getattr(record, "cycle_id", NO_CYCLE_ID),
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        extra = _extra_fields(record)
        if extra:
            payload["extra"] = extra
        return json.dumps(payload)


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Fields passed via extra=, stringified when not JSON serializable."""
    fields: dict[str, Any] = {}
    for key, value in vars(record).items():
        if key in _STANDARD_ATTRS:
            continue
        try:
            json.dumps(value)
        except (TypeError, ValueError):
            value = str(value)
        fields[key] = value
    return fields


# =============================================================================
# HANDLER SETUP
# =============================================================================

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def build_handler(log_format: str = "text", stream: TextIO | None = None) -> logging.Handler:
    """
    Stream handler with the engine's formatter and cycle id filter attached.

    Embedders that manage their own logging tree can add this handler to
    any logger instead of calling setup_logging().
    """
    handler = logging.StreamHandler(stream or sys.stdout)
    if log_format.lower() == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(DEFAULT_TEXT_FORMAT, DEFAULT_DATE_FORMAT))
    handler.addFilter(CycleIdFilter())
    return handler


def setup_logging(
        level: str | None = None,
        log_format: str | None = None,
        suppress_noisy_loggers: bool = True,
        stream: TextIO | None = None,
) -> logging.Handler:
    """
    Route all records to a single handler on the root logger.

    Call once at startup. Any handlers already on the root logger are
    replaced.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL (settings.log_level
               when omitted)
        log_format: 'text' or 'json' (settings.log_format when omitted)
        suppress_noisy_loggers: Cap yfinance/urllib3/sqlalchemy at WARNING
        stream: Output stream, stdout by default

    Returns:
        The installed handler
    """
    level_name = level or settings.log_level
    format_name = log_format or settings.log_format

    handler = build_handler(format_name, stream)
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_get_log_level(level_name))

    if suppress_noisy_loggers:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        f"Logging configured: level={level_name}, format={format_name}",
        extra={"config": {"level": level_name, "format": format_name}},
    )
    return handler


def _get_log_level(level_str: str) -> int:
    """
    Map a level name to its logging constant.

    Raises:
        ValueError: Unknown level name
    """
    name = level_str.strip().upper()
    try:
        return _LEVELS[name]
    except KeyError:
        raise ValueError(
            f"Invalid log level: '{level_str}'. Valid levels are: {', '.join(_LEVELS)}"
        ) from None
