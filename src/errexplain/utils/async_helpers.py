"""Exception taxonomy and async helpers for resilient collaborator calls.

This module provides:
- The pipeline's custom exceptions (one class per caller-visible failure kind)
- Timeout wrappers for async operations
- A retry decorator factory for idempotent storage calls

The completion service is never retried. Only storage statements that run in
their own transaction are wrapped with ``create_retry``.
"""

from __future__ import annotations

import asyncio
import builtins
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import ParamSpec, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

log = structlog.get_logger()

P = ParamSpec("P")
T = TypeVar("T")


# =============================================================================
# Custom Exceptions
# =============================================================================


class ErrExplainError(Exception):
    """Base exception for all pipeline errors."""


class ValidationError(ErrExplainError):
    """Caller input is missing or malformed. Never retried."""


class QuotaExceeded(ErrExplainError):
    """The client's daily analysis quota is used up.

    Attributes:
        limit: Configured daily limit.
        used: Usage observed when the request was denied.
        resets_at: Next quota boundary (timezone-aware).
    """

    def __init__(self, message: str, limit: int, used: int, resets_at: datetime) -> None:
        super().__init__(message)
        self.limit = limit
        self.used = used
        self.resets_at = resets_at


class UpstreamUnavailable(ErrExplainError):
    """A collaborator (completion service or document store) failed."""


class CompletionError(UpstreamUnavailable):
    """The completion service call failed at the transport or API level."""


class RateLimitError(CompletionError):
    """The completion provider rejected the call for rate limiting.

    Attributes:
        retry_after: Number of seconds to wait before retrying, if known.
    """

    def __init__(self, message: str, retry_after: int | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class TimeoutError(UpstreamUnavailable):
    """Operation timed out."""


class StoreError(UpstreamUnavailable):
    """The document store could not complete an operation."""


class DocumentNotFoundError(StoreError):
    """A store update targeted a document that does not exist."""


class Unauthorized(ErrExplainError):
    """The caller does not own the targeted record."""


class NotFound(ErrExplainError):
    """The record does not exist or is not visible to this caller."""


# =============================================================================
# Retry Decorator
# =============================================================================


def _log_retry(retry_state: RetryCallState) -> None:
    """Log retry attempts for debugging."""
    if retry_state.outcome is None:
        return

    exception = retry_state.outcome.exception()
    if exception:
        log.warning(
            "retrying_operation",
            attempt=retry_state.attempt_number,
            exception_type=type(exception).__name__,
            exception_message=str(exception),
            wait_time=retry_state.next_action.sleep if retry_state.next_action else 0,
        )


def create_retry(
    retry_on: tuple[type[BaseException], ...],
    max_attempts: int = 3,
    min_wait: float = 0.05,
    max_wait: float = 1.0,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Create a retry decorator for idempotent operations.

    Args:
        retry_on: Tuple of exception types to retry on.
        max_attempts: Maximum number of attempts.
        min_wait: Minimum wait time between retries (seconds).
        max_wait: Maximum wait time between retries (seconds).

    Returns:
        A retry decorator configured with the given parameters. The last
        exception is re-raised once attempts are exhausted.
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=min_wait, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(retry_on),
        before_sleep=_log_retry,
        reraise=True,
    )


# =============================================================================
# Timeout Utilities
# =============================================================================


async def with_timeout(
    coro: Awaitable[T],
    timeout: float,
    error_message: str | None = None,
) -> T:
    """Execute an awaitable with a timeout.

    Args:
        coro: The coroutine to execute.
        timeout: Timeout in seconds.
        error_message: Custom error message for timeout.

    Returns:
        The result of the coroutine.

    Raises:
        TimeoutError: If the operation times out.
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except builtins.TimeoutError as e:
        msg = error_message or f"Operation timed out after {timeout}s"
        log.warning("operation_timeout", timeout=timeout)
        raise TimeoutError(msg) from e
