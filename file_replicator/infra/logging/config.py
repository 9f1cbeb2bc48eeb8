"""Logging configuration setup.

Provides logging configuration using:
- dictConfig for the root logger and filters
- QueueHandler + QueueListener for non-blocking I/O
- ContextInjectingFilter for automatic context propagation
- All handlers on root logger (child loggers propagate)
- JSONL or plain text format, always on stderr
"""

from __future__ import annotations

import atexit
import logging
import logging.config
import sys
import time
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from queue import Queue
from typing import TYPE_CHECKING, Any

from .context import ContextInjectingFilter
from .formatters import JSONFormatter

if TYPE_CHECKING:
    from file_replicator.core.settings.logs import LoggingSettings

# Global queue and listener for async logging
_log_queue: Queue[logging.LogRecord] | None = None
_listener: QueueListener | None = None
_queue_handler: QueueHandler | None = None
_LOGGING_INITIALIZED = False

logger = logging.getLogger(__name__)

TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
JSON_FMT_KEYS = {"level": "levelname", "logger": "name", "message": "message"}

# Chatty third-party loggers capped at WARNING
NOISY_LOGGERS = ("botocore", "aiobotocore", "boto3", "aioboto3", "urllib3", "httpx", "httpcore")


def complete(max_wait: float = 5.0) -> None:
    """Wait until queued log records have been handed to the handlers.

    Call before printing a final summary so stderr output does not
    interleave with it.
    """
    if _log_queue is None or _listener is None:
        return

    start = time.monotonic()
    while not _log_queue.empty() and (time.monotonic() - start) < max_wait:
        time.sleep(0.01)

    # Last record may still be in a handler
    time.sleep(0.05)


def shutdown() -> None:
    """Stop the QueueListener and detach the root QueueHandler.

    Registered with atexit; safe to call more than once.
    """
    global _log_queue, _listener, _queue_handler

    if _listener is not None:
        complete()
        _listener.stop()
        for handler in _listener.handlers:
            handler.close()
        _listener = None

    if _queue_handler is not None:
        logging.getLogger().removeHandler(_queue_handler)
        _queue_handler = None

    _log_queue = None


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **configure_kwargs: Any,
) -> None:
    """Ensure logging is configured once across entrypoints.

    Args:
        log_settings: Optional logging settings instance. If omitted, settings
            are loaded via get_logging_settings().
        force: Reconfigure logging even if it was already initialized.
        **configure_kwargs: Explicit overrides for configure_logging().
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force:
        return

    if log_settings is None:
        from file_replicator.core.settings import get_logging_settings

        log_settings = get_logging_settings()

    log_config = {**log_settings.to_logging_kwargs(), **configure_kwargs}

    configure_logging(**log_config)
    _LOGGING_INITIALIZED = True


def configure_logging(
    log_level: str = "INFO",
    console_level: str | None = None,
    file_level: str | None = None,
    file_path: str | Path | None = None,
    json_logs: bool = False,
    console_enabled: bool = True,
    include_context: bool = True,
    capture_warnings: bool = True,
    file_max_bytes: int = 10 * 1024 * 1024,
    file_backup_count: int = 5,
    service_name: str = "file-replicator",
    **kwargs: Any,
) -> None:
    """Configure logging with dictConfig and QueueHandler pattern.

    All handlers are attached to a QueueListener; application loggers
    propagate to a single QueueHandler on the root logger. Calling it
    again replaces the previous configuration.

    Args:
        log_level: Root logger level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        console_level: Console handler level. If None, uses log_level.
        file_level: File handler level. If None, uses log_level.
        file_path: Path to log file. None disables file logging.
        json_logs: Enable JSONL (JSON Lines) structured logging.
        console_enabled: Enable stderr logging.
        include_context: Enable ContextInjectingFilter for auto context.
        capture_warnings: Forward Python warnings to logging system.
        file_max_bytes: Maximum log file size before rotation.
        file_backup_count: Number of rotated log files to keep.
        service_name: Static ``service`` field of JSON records.
        **kwargs: Ignored extra settings.

    Example:
        from file_replicator.core.settings import get_logging_settings
        configure_logging(**get_logging_settings().to_logging_kwargs())
    """
    if kwargs:
        logger.debug("Unused logging kwargs supplied: %s", ", ".join(sorted(kwargs.keys())))

    shutdown()

    if capture_warnings:
        logging.captureWarnings(True)

    path = Path(file_path) if file_path else None
    if path:
        path.parent.mkdir(parents=True, exist_ok=True)

    logging_config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": _build_filters_config(include_context=include_context),
        "loggers": {name: {"level": "WARNING"} for name in NOISY_LOGGERS},
        # QueueHandler is attached after dictConfig
        "root": {
            "level": log_level.upper(),
            "handlers": [],
            "filters": ["context"] if include_context else [],
        },
    }
    logging.config.dictConfig(logging_config)

    _setup_queue_logging(
        console_enabled=console_enabled,
        console_level=console_level or log_level,
        file_path=path,
        file_level=file_level or log_level,
        file_max_bytes=file_max_bytes,
        file_backup_count=file_backup_count,
        json_logs=json_logs,
        service_name=service_name,
        include_context=include_context,
    )


def _build_filters_config(include_context: bool) -> dict[str, Any]:
    """Build filters configuration for dictConfig."""
    filters: dict[str, Any] = {}

    if include_context:
        filters["context"] = {
            "()": "file_replicator.infra.logging.context.ContextInjectingFilter",
        }

    return filters


def _build_formatter(json_logs: bool, service_name: str) -> logging.Formatter:
    if json_logs:
        return JSONFormatter(fmt_keys=dict(JSON_FMT_KEYS), static={"service": service_name})
    return logging.Formatter(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT)


def _setup_queue_logging(
    console_enabled: bool,
    console_level: str,
    file_path: Path | None,
    file_level: str,
    file_max_bytes: int,
    file_backup_count: int,
    json_logs: bool,
    service_name: str,
    include_context: bool,
) -> None:
    """Set up QueueHandler + QueueListener for non-blocking logging.

    The context filter sits on the QueueHandler: it runs in the logging
    task, where the contextvars are still visible, and sees records from
    every logger.
    """
    global _log_queue, _listener, _queue_handler

    _log_queue = Queue()
    handlers: list[logging.Handler] = []

    if console_enabled:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(getattr(logging, console_level.upper()))
        console_handler.setFormatter(_build_formatter(json_logs, service_name))
        handlers.append(console_handler)

    if file_path:
        file_handler = RotatingFileHandler(
            file_path,
            maxBytes=file_max_bytes,
            backupCount=file_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(getattr(logging, file_level.upper()))
        file_handler.setFormatter(_build_formatter(json_logs, service_name))
        handlers.append(file_handler)

    if not handlers:
        return

    _listener = QueueListener(_log_queue, *handlers, respect_handler_level=True)
    _listener.start()
    atexit.register(shutdown)

    _queue_handler = QueueHandler(_log_queue)
    if include_context:
        _queue_handler.addFilter(ContextInjectingFilter())
    logging.getLogger().addHandler(_queue_handler)
