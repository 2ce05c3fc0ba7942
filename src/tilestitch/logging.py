"""Logging configuration for TileStitch.

All modules log under the ``tilestitch`` namespace via :func:`get_logger`.
Nothing is printed until :func:`setup_logging` attaches handlers, so the
engines stay silent when used as a library.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import threading
from datetime import datetime, timezone
from typing import Any

LOGGER_NAME = "tilestitch"
LOG_LEVEL_ENV = "TILESTITCH_LOG_LEVEL"

DEFAULT_FORMAT = "%(levelname)-5s | %(name)-20s | %(message)s"
VERBOSE_FORMAT = "%(asctime)s | %(levelname)-5s | %(name)-20s | %(message)s"

# Attributes every LogRecord carries; anything else came in through ``extra=``.
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime"}

_SETUP_LOCK = threading.Lock()


class JsonFormatter(logging.Formatter):
    """One JSON object per line, including any ``extra=`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def level_from_env(default: int = logging.INFO) -> int:
    """Read the log level from ``TILESTITCH_LOG_LEVEL``.

    Accepts level names (``"debug"``) or numbers (``"10"``).  Unknown values
    fall back to *default*.
    """
    raw = os.environ.get(LOG_LEVEL_ENV, "").strip()
    if not raw:
        return default
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw.upper())
    return level if isinstance(level, int) else default


def _make_formatter(json_logs: bool, fmt: str) -> logging.Formatter:
    return JsonFormatter() if json_logs else logging.Formatter(fmt)


def _console_handler(logger: logging.Logger) -> logging.StreamHandler:
    """Return the single stderr handler on *logger*, creating it if needed."""
    existing = [
        h
        for h in logger.handlers
        if type(h) is logging.StreamHandler and getattr(h, "stream", None) is sys.stderr
    ]
    for extra in existing[1:]:
        logger.removeHandler(extra)
    if existing:
        return existing[0]
    handler = logging.StreamHandler(sys.stderr)
    logger.addHandler(handler)
    return handler


def _file_handler(logger: logging.Logger, log_file: str) -> logging.FileHandler:
    target = os.path.abspath(str(log_file))
    for h in logger.handlers:
        if isinstance(h, logging.FileHandler) and h.baseFilename == target:
            return h
    handler = logging.FileHandler(target, encoding="utf-8")
    logger.addHandler(handler)
    return handler


def setup_logging(
    level: int | None = None,
    verbose: bool = False,
    log_file: str | None = None,
    json_logs: bool = False,
) -> logging.Logger:
    """Configure the ``tilestitch`` logger.

    Repeated calls reconfigure the existing handlers instead of stacking new
    ones, so the CLI and tests may call this freely.

    Args:
        level: Logging level. ``None`` reads ``TILESTITCH_LOG_LEVEL`` and
            defaults to INFO.
        verbose: Include timestamps in console output.
        log_file: Optional file that receives the same records (always with
            timestamps).
        json_logs: Emit JSON lines instead of text.

    Returns:
        The configured package logger.
    """
    with _SETUP_LOCK:
        logger = logging.getLogger(LOGGER_NAME)
        logger.setLevel(level_from_env() if level is None else level)

        console = _console_handler(logger)
        console.setFormatter(
            _make_formatter(json_logs, VERBOSE_FORMAT if verbose else DEFAULT_FORMAT)
        )

        if log_file:
            _file_handler(logger, log_file).setFormatter(
                _make_formatter(json_logs, VERBOSE_FORMAT)
            )
        return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a TileStitch module.

    Args:
        name: Module name (e.g., ``"merge"``, ``"renderer"``).

    Returns:
        A logger instance under the ``tilestitch`` namespace.
    """
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
