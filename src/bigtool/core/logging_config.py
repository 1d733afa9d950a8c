"""Logging setup: JSON records stamped with a process id and the current run id."""
import contextvars
import logging
import logging.config
import os
import sys
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Mapping, Optional

from pythonjsonlogger.json import JsonFormatter

_run_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("bigtool_run_id", default=None)


def current_run_id() -> Optional[str]:
    return _run_id.get()


@contextmanager
def run_context(run_id: Optional[str] = None) -> Iterator[str]:
    """Tag every record logged inside the block (and its tasks) with ``run_id``."""
    run_id = run_id or uuid.uuid4().hex[:12]
    token = _run_id.set(run_id)
    try:
        yield run_id
    finally:
        _run_id.reset(token)


class RunContextFilter(logging.Filter):
    """Stamp ``correlation_id`` (per process) and ``run_id`` (per agent run or request)."""

    def __init__(self, correlation_id: str):
        super().__init__()
        self.correlation_id = correlation_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = self.correlation_id
        record.run_id = _run_id.get() or "-"
        return True


class DevJsonFormatter(JsonFormatter):
    """JSON lines coloured by level, for terminals."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[37m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[41m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        color = self.LEVEL_COLORS.get(record.levelno)
        return f"{color}{line}{self.RESET}" if color else line


def setup_logging(
    level: str = "INFO",
    correlation_id: Optional[str] = None,
    component_levels: Optional[Mapping[str, str]] = None,
) -> str:
    """Configure the ``bigtool`` logger tree and return the correlation id.

    ``component_levels`` overrides the level of individual sub-loggers, e.g.
    ``{"bigtool.search": "DEBUG"}``. Outside development (``ENV`` set to
    anything else) records are plain JSON without colour.
    """
    is_dev = os.getenv("ENV", "development") == "development"
    formatter_class = DevJsonFormatter if is_dev else JsonFormatter
    correlation_id = correlation_id or str(uuid.uuid4())

    loggers: Dict[str, Any] = {
        "": {"handlers": ["console"], "level": "WARNING"},
        "bigtool": {"handlers": ["console"], "level": level, "propagate": False},
        "uvicorn.access": {"handlers": ["console"], "level": "WARNING", "propagate": False},
        "uvicorn.error": {"handlers": ["console"], "level": "ERROR", "propagate": False},
    }
    for name, component_level in (component_levels or {}).items():
        # Children of "bigtool" reuse its handler through propagation
        loggers[name] = {"level": component_level}

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "run_context": {
                "()": f"{RunContextFilter.__module__}.{RunContextFilter.__name__}",
                "correlation_id": correlation_id,
            }
        },
        "formatters": {
            "json": {
                "()": f"{formatter_class.__module__}.{formatter_class.__name__}",
                "format": "%(asctime)s %(levelname)s %(name)s %(message)s %(run_id)s",
                "rename_fields": {"levelname": "level", "asctime": "timestamp"},
                "json_default": str,
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": "DEBUG",
                "formatter": "json",
                "filters": ["run_context"],
                "stream": sys.stdout,
            }
        },
        "loggers": loggers,
    })

    logging.getLogger(__name__).info("Logging configured", extra={"correlation_id": correlation_id})
    return correlation_id
