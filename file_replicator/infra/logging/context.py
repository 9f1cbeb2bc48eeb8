"""Context management for structured logging.

Provides automatic context injection into log records using contextvars,
so the file, storage key and backend being processed appear on every log
line without being passed to each call. Each asyncio task gets its own
copy of the context, so concurrent files and backends never mix.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

# Each async task gets its own copy automatically
_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Add fields to the logging context of the current task.

    Example:
        ```python
        set_log_context(file="hello.txt", key="text/hello.txt")
        logger.info("Uploading")  # record carries file and key
        ```
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def get_log_context() -> dict[str, Any]:
    """Get a copy of the current logging context."""
    return _log_context.get().copy()


def clear_log_context() -> None:
    """Clear all logging context for the current task."""
    _log_context.set({})


def remove_from_log_context(*keys: str) -> None:
    """Remove specific keys from the logging context."""
    current = _log_context.get().copy()
    for key in keys:
        current.pop(key, None)
    _log_context.set(current)


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Scope fields to a block, restoring the previous context on exit.

    Example:
        ```python
        with log_context(backend="minio"):
            await backend.upload_object(key, data)
        ```
    """
    token = _log_context.set({**_log_context.get(), **kwargs})
    try:
        yield
    finally:
        _log_context.reset(token)


class ContextInjectingFilter(logging.Filter):
    """Logging filter that injects the current context into each LogRecord.

    Existing record attributes (including ``extra=`` fields) win over
    context values.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True
