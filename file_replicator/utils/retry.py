"""Retry and backoff utilities for backend uploads.

A small tenacity-style retry mechanism with exponential backoff, jitter
and a predicate deciding which exceptions are worth another attempt.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import ParamSpec, TypeVar

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


class RetryError(Exception):
    """Exception raised when all retry attempts are exhausted."""

    def __init__(self, last_exception: Exception, attempts: int) -> None:
        """Initialize retry error.

        Args:
            last_exception: The final exception that caused failure.
            attempts: Number of attempts made.
        """
        self.last_exception = last_exception
        self.attempts = attempts
        super().__init__(f"Failed after {attempts} attempts. Last error: {last_exception}")


class RetryStrategy:
    """Backoff and retry-eligibility policy."""

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 60.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
        exceptions: tuple[type[Exception], ...] = (Exception,),
        retry_if: Callable[[Exception], bool] | None = None,
    ) -> None:
        """Initialize retry strategy.

        Args:
            max_attempts: Total attempts including the first call.
            initial_delay: Initial delay in seconds before first retry.
            max_delay: Maximum delay in seconds between retries.
            exponential_base: Base for exponential backoff calculation.
            jitter: Whether to add random jitter to delays.
            exceptions: Tuple of exception types to retry on.
            retry_if: Extra predicate; the exception is retried only if it
                also returns True.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.exceptions = exceptions
        self.retry_if = retry_if

    def should_retry(self, exception: Exception) -> bool:
        """Check if exception should trigger a retry."""
        if not isinstance(exception, self.exceptions):
            return False
        return self.retry_if is None or self.retry_if(exception)

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for given attempt number (0-indexed).

        Uses exponential backoff with optional jitter.
        """
        delay = min(self.initial_delay * (self.exponential_base**attempt), self.max_delay)

        # Random between 50-150% of delay
        if self.jitter:
            delay = delay * (0.5 + random.random())

        return delay


def retry(
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    retry_if: Callable[[Exception], bool] | None = None,
    on_retry: Callable[[Exception, int], None] | None = None,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorator for retrying async functions with exponential backoff.

    Non-retryable exceptions propagate unchanged. Once attempts are
    exhausted the last exception is wrapped in ``RetryError``.

    Args:
        max_attempts: Total attempts including the first call.
        initial_delay: Initial delay in seconds before first retry.
        max_delay: Maximum delay in seconds between retries.
        exponential_base: Base for exponential backoff calculation.
        jitter: Whether to add random jitter to delays.
        exceptions: Tuple of exception types to retry on.
        retry_if: Extra predicate deciding whether an exception is retried.
        on_retry: Optional callback called on each retry with (exception, attempt).

    Example:
        ```python
        @retry(max_attempts=3, initial_delay=0.5, exceptions=(StorageUploadError,))
        async def put() -> UploadResult:
            return await backend.upload_object(key, data)
        ```
    """
    strategy = RetryStrategy(
        max_attempts=max_attempts,
        initial_delay=initial_delay,
        max_delay=max_delay,
        exponential_base=exponential_base,
        jitter=jitter,
        exceptions=exceptions,
        retry_if=retry_if,
    )

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @wraps(func)
        async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not strategy.should_retry(e):
                        logger.debug(
                            f"Non-retryable exception in {func.__name__}: {e}",
                            extra={"function": func.__name__, "exception": str(e)},
                        )
                        raise

                    if attempt >= max_attempts - 1:
                        logger.warning(
                            f"All retry attempts exhausted for {func.__name__}",
                            extra={
                                "function": func.__name__,
                                "attempts": attempt + 1,
                                "last_exception": str(e),
                            },
                        )
                        raise RetryError(e, attempt + 1) from e

                    delay = strategy.calculate_delay(attempt)
                    logger.warning(
                        f"Retrying {func.__name__} after {delay:.2f}s (attempt {attempt + 1}/{max_attempts})",
                        extra={
                            "function": func.__name__,
                            "attempt": attempt + 1,
                            "max_attempts": max_attempts,
                            "delay": delay,
                            "exception": str(e),
                        },
                    )

                    if on_retry:
                        on_retry(e, attempt + 1)

                    await asyncio.sleep(delay)

            msg = "Retry logic error: exhausted all attempts"
            raise RuntimeError(msg)

        return async_wrapper

    return decorator
