"""Async utility functions and the exception taxonomy.

This module provides:
- Custom exceptions for error handling
- Retry decorators with exponential backoff for idempotent reads
- A periodic ticker used for status cycling

Replies are never retried: a failed assistant call or message write
produces exactly one apology. Only read lookups (thread history, channel
info) go through the retry decorators.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

import httpx
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


class MintieError(Exception):
    """Base exception for all bot errors."""


class TransportError(MintieError):
    """Calling the assistant backend failed at the network level."""


class RenderError(MintieError):
    """Posting or editing a chat message failed."""


class WorkspaceNotConfiguredError(MintieError):
    """No assistant configuration exists for a workspace."""


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
    max_attempts: int = 3,
    min_wait: float = 1.0,
    max_wait: float = 30.0,
    retry_on: tuple[type[Exception], ...] = (httpx.TimeoutException, httpx.NetworkError),
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Create a customized retry decorator.

    Args:
        max_attempts: Maximum number of retry attempts.
        min_wait: Minimum wait time between retries (seconds).
        max_wait: Maximum wait time between retries (seconds).
        retry_on: Tuple of exception types to retry on.

    Returns:
        A retry decorator configured with the given parameters.
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(retry_on),
        before_sleep=_log_retry,
        reraise=True,
    )


# =============================================================================
# Periodic Ticker
# =============================================================================


async def run_periodically(
    interval: float,
    callback: Callable[[], Awaitable[None]],
    should_stop: Callable[[], bool],
) -> None:
    """Invoke ``callback`` every ``interval`` seconds until stopped.

    The stop predicate is checked both before sleeping and after waking so
    a callback never fires once the owner has stopped. Exceptions raised by
    the callback are logged and do not end the loop.

    Args:
        interval: Seconds between invocations.
        callback: Coroutine function to run on each tick.
        should_stop: Predicate returning True once ticking must end.
    """
    while not should_stop():
        await asyncio.sleep(interval)
        if should_stop():
            return
        try:
            await callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.warning("periodic_callback_failed", error=str(e))
