"""
app/core/logging.py

Purpose: Logging configuration

- JSON lines in production, colored one-liners in development
- Per-request context (phone_number, account_id, state, client) carried in a
  ContextVar so concurrent requests never see each other's fields
- Third-party loggers kept at WARNING
"""

import logging
import sys
import json
from contextvars import ContextVar
from datetime import datetime
from typing import Any, Dict

from app.core.config import settings


CONTEXT_FIELDS = ("phone_number", "account_id", "state", "client")

# Fields shown inline by the development formatter, in this order
INLINE_FIELDS = (("phone_number", "phone"), ("account_id", "account"), ("state", "state"))

LEVEL_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
RESET = "\033[0m"

_log_context: ContextVar[Dict[str, Any]] = ContextVar("phoneverify_log_context", default={})


def current_log_context() -> Dict[str, Any]:
    return dict(_log_context.get())


class ContextFilter(logging.Filter):
    """
    Copies the active LogContext onto each record. Values passed through
    `extra=` win over the context.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per line for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.utcfromtimestamp(record.created).isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        entry.update({
            field: getattr(record, field)
            for field in CONTEXT_FIELDS
            if hasattr(record, field)
        })

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """[HH:MM:SS] LEVEL logger: message [phone=..., state=...]"""

    def format(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelname, RESET)
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{color}[{clock}] {record.levelname:<8}{RESET} {record.name}: {record.getMessage()}"

        inline = [
            f"{label}={getattr(record, field)}"
            for field, label in INLINE_FIELDS
            if hasattr(record, field)
        ]
        if inline:
            line += f" [{', '.join(inline)}]"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)

        return line


def setup_logging():
    """
    Installs a single stdout handler on the root logger with the
    environment's formatter and the context filter.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter() if settings.is_production else DevelopmentFormatter())
    handler.addFilter(ContextFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for noisy in ("httpx", "motor", "pymongo", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger = logging.getLogger("phoneverify")
    logger.info(
        "Logging configured",
        extra={
            "environment": settings.ENVIRONMENT,
            "log_level": settings.LOG_LEVEL,
            "debug_mode": settings.DEBUG
        }
    )

    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"phoneverify.{name}")


class LogContext:
    """
    Adds fields to every record logged inside the block, including across
    awaits. Nested blocks merge with the enclosing context.

    Usage:
        with LogContext(phone_number="+1555***0000", state="CODE_ACTIVE"):
            logger.info("Verifying code")
    """

    def __init__(self, **kwargs):
        self.context = kwargs
        self._token = None

    def __enter__(self):
        self._token = _log_context.set({**_log_context.get(), **self.context})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _log_context.reset(self._token)
