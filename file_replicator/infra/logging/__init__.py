"""Logging infrastructure.

Usage:
    from file_replicator.infra.logging import setup_logging, log_context

    setup_logging()
    with log_context(file="report.pdf"):
        logger.info("Replicating")
"""

from .config import complete, configure_logging, setup_logging, shutdown
from .context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    log_context,
    remove_from_log_context,
    set_log_context,
)
from .formatters import JSONFormatter

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "clear_log_context",
    "complete",
    "configure_logging",
    "get_log_context",
    "log_context",
    "remove_from_log_context",
    "set_log_context",
    "setup_logging",
    "shutdown",
]
