"""Exponential backoff retry decorator for adapter-internal HTTP calls."""

from __future__ import annotations

import asyncio
import functools
import logging
import random
from typing import TYPE_CHECKING, TypeVar

import httpx

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})


def is_retryable(exc: BaseException) -> bool:
    """True for transport errors and upstream statuses worth another attempt."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUSES
    return isinstance(exc, httpx.TransportError)


def async_retry(
    max_retries: int = 2,
    base_delay: float = 0.25,
    max_delay: float = 2.0,
    jitter: bool = True,
    should_retry: Callable[[BaseException], bool] = is_retryable,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Retry an async callable with exponential backoff while ``should_retry``.

    The last exception is re-raised unchanged once attempts are exhausted or
    the failure is not retryable, so callers can still classify it.
    Cancellation is never retried.
    """

    def decorator(
        func: Callable[..., Awaitable[T]],
    ) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: object, **kwargs: object) -> T:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except Exception as exc:
                    if attempt >= max_retries or not should_retry(exc):
                        raise
                    delay = min(base_delay * (2**attempt), max_delay)
                    if jitter:
                        delay *= 0.5 + random.random()
                    attempt += 1
                    logger.warning(
                        "Retry %d/%d for %s after %.2fs: %s",
                        attempt,
                        max_retries,
                        func.__name__,
                        delay,
                        exc,
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
