"""Settings, logging, metrics and events shared across the package."""
from .events import EventEmitter
from .logging_config import current_run_id, run_context, setup_logging
from .metrics import metrics
from .settings import Settings, settings

__all__ = [
    "EventEmitter",
    "Settings",
    "current_run_id",
    "metrics",
    "run_context",
    "settings",
    "setup_logging",
]
