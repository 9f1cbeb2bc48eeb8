"""Utility modules for common operations."""

from file_replicator.utils.retry import RetryError, RetryStrategy, retry

__all__ = [
    "RetryError",
    "RetryStrategy",
    "retry",
]
