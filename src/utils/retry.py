"""Fixed-delay retry for single fallible async calls.

The caller decides what is transient: :func:`retry_async` only re-attempts
when ``is_retryable(exc)`` returns ``True``.  Anything else, or the last
failed attempt, propagates unchanged.  The delay is an ``asyncio.sleep`` so
task cancellation is observed while waiting between attempts.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

import structlog

from src.utils.errors import RateLimitError

_T = TypeVar("_T")

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_SECONDS = 10.0


def is_rate_limited(exc: BaseException) -> bool:
    """Predicate for provider capacity errors."""
    return isinstance(exc, RateLimitError)


async def retry_async(
    operation: Callable[[], Awaitable[_T]],
    *,
    is_retryable: Callable[[BaseException], bool],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
    operation_name: str = "operation",
) -> _T:
    """Await ``operation()`` up to ``max_attempts`` times.

    Parameters
    ----------
    operation:
        Zero-argument factory returning a fresh awaitable per attempt.
    is_retryable:
        Classifies a failure as transient (``True``) or terminal.
    max_attempts:
        Total attempts including the first one.  Must be at least 1.
    delay_seconds:
        Fixed wait between attempts.
    operation_name:
        Label used in log events.

    Returns
    -------
    The operation's result from the first successful attempt.

    Raises
    ------
    ValueError
        If ``max_attempts`` is less than 1.
    Exception
        The terminal error, or the last transient one once attempts run out.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as exc:
            if not is_retryable(exc) or attempt >= max_attempts:
                if attempt > 1:
                    logger.warning(
                        "retry_exhausted",
                        operation=operation_name,
                        attempts=attempt,
                        error=str(exc),
                    )
                raise
            logger.info(
                "retry_scheduled",
                operation=operation_name,
                attempt=attempt,
                max_attempts=max_attempts,
                delay_s=delay_seconds,
                error=str(exc),
            )
        await asyncio.sleep(delay_seconds)
        attempt += 1
