"""Bounded retry and time-boxing helpers for fallible remote calls."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from obsidian_rest.errors import ErrorKind, VaultError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryPredicate = Callable[[BaseException], bool]
RetryCallback = Callable[[int, BaseException], None]


def retry_on_any(error: BaseException) -> bool:
    """Default predicate: retry every ordinary exception."""
    return isinstance(error, Exception)


def retry_on_kinds(*kinds: ErrorKind) -> RetryPredicate:
    """Build a predicate that retries only :class:`VaultError` of the given kinds."""

    def _predicate(error: BaseException) -> bool:
        return isinstance(error, VaultError) and error.kind in kinds

    return _predicate


async def retry_with_delay(
    operation: Callable[[], Awaitable[T]],
    *,
    operation_name: str,
    max_attempts: int,
    delay_seconds: float,
    should_retry: Optional[RetryPredicate] = None,
    on_retry: Optional[RetryCallback] = None,
) -> T:
    """Run ``operation`` up to ``max_attempts`` times with a fixed delay between attempts.

    Args:
        operation: Zero-argument coroutine function performing the remote call.
        operation_name: Name used in log lines and error details.
        max_attempts: Total number of attempts (first call included).
        delay_seconds: Fixed pause before each retry.
        should_retry: Predicate deciding whether a failure is retryable. Defaults
            to retrying any exception.
        on_retry: Callback invoked as ``on_retry(attempt, error)`` before each
            retry. When omitted a warning is logged instead.

    Returns:
        The value produced by the first successful attempt.

    Raises:
        VaultError: After the last attempt. A :class:`VaultError` raised by the
            operation is re-raised with attempt metadata merged into ``details``
            (its ``kind`` is preserved); any other exception is wrapped as
            ``SERVICE_UNAVAILABLE`` and chained.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    predicate = should_retry or retry_on_any
    attempts = 0

    async def _attempt() -> T:
        nonlocal attempts
        attempts += 1
        return await operation()

    def _before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        if on_retry is not None:
            on_retry(retry_state.attempt_number, error)
            return
        logger.warning(
            "Operation '%s' failed on attempt %d of %d (%s). Retrying in %.2fs...",
            operation_name,
            retry_state.attempt_number,
            max_attempts,
            error,
            delay_seconds,
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_fixed(delay_seconds),
        retry=retry_if_exception(predicate),
        before_sleep=_before_sleep,
        reraise=True,
    )

    try:
        return await retrying(_attempt)
    except VaultError as exc:
        logger.error(
            "Operation '%s' failed definitively after %d attempt(s): %s",
            operation_name,
            attempts,
            exc,
        )
        exc.details.update(
            {
                "operation": exc.details.get("operation", operation_name),
                "retried_operation": operation_name,
                "attempts": attempts,
                "max_attempts": max_attempts,
                "final_attempt": True,
            }
        )
        raise
    except Exception as exc:
        logger.error(
            "Operation '%s' failed definitively after %d attempt(s): %s",
            operation_name,
            attempts,
            exc,
        )
        raise VaultError(
            ErrorKind.SERVICE_UNAVAILABLE,
            f"Operation '{operation_name}' failed after {attempts} attempt(s). Last error: {exc}",
            {
                "operation": operation_name,
                "attempts": attempts,
                "max_attempts": max_attempts,
                "final_attempt": True,
                "original_error_type": type(exc).__name__,
            },
        ) from exc


async def call_with_timeout(
    operation: Callable[[], Awaitable[T]],
    timeout_seconds: float,
    operation_name: str,
) -> T:
    """Race ``operation`` against a timer, cancelling whichever loses.

    Raises:
        VaultError: ``TIMEOUT`` when the timer wins. The late result of the
            cancelled call is discarded.
    """
    try:
        return await asyncio.wait_for(operation(), timeout=timeout_seconds)
    except asyncio.TimeoutError as exc:
        raise VaultError(
            ErrorKind.TIMEOUT,
            f"Operation '{operation_name}' timed out after {timeout_seconds * 1000:.0f}ms",
            {"operation": operation_name, "timeout_ms": int(timeout_seconds * 1000)},
        ) from exc


def describe_error(error: Any) -> str:
    """Short, stack-free description of an error for strategy messages."""
    if isinstance(error, VaultError):
        return f"{error.kind.value}: {error.message}"
    return f"{type(error).__name__}: {error}"
