"""Logging configuration with session correlation identifiers."""
from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from typing import Optional

_CORRELATION_ID: ContextVar[Optional[str]] = ContextVar("code_auditor_correlation_id", default=None)
_ROOT_LOGGER_NAME = "code_auditor"
_PLAIN_FORMAT = "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s"


class _CorrelationFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = _CORRELATION_ID.get() or "-"
        return True


class _JsonFormatter(logging.Formatter):
    """Render each record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(level: str | int = "INFO", *, structured: bool = False) -> None:
    """Install a single stream handler on the package logger."""

    logger = logging.getLogger(_ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(_CorrelationFilter())
    handler.setFormatter(_JsonFormatter() if structured else logging.Formatter(_PLAIN_FORMAT))
    logger.addHandler(handler)

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)
    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    if name != _ROOT_LOGGER_NAME and not name.startswith(f"{_ROOT_LOGGER_NAME}."):
        name = f"{_ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def set_correlation_id(value: Optional[str]) -> None:
    _CORRELATION_ID.set(value)


def get_correlation_id() -> Optional[str]:
    return _CORRELATION_ID.get()


__all__ = ["configure_logging", "get_logger", "get_correlation_id", "set_correlation_id"]
