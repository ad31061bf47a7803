"""Rate limiting and retry helpers shared by the Polymarket API clients."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import ParamSpec, TypeVar

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY = 1.0
RETRY_STATUS_CODES = (429, 500, 502, 503, 504)


class RateLimiter:
    """Spaces consecutive requests at least ``min_interval`` seconds apart.

    A zero interval disables the limiter.
    """

    def __init__(self, min_interval: float) -> None:
        self._min_interval = max(0.0, min_interval)
        self._last_request_time: float | None = None
        self._lock = asyncio.Lock()

    def _wait_time(self) -> float:
        if self._last_request_time is None:
            return 0.0
        elapsed = time.monotonic() - self._last_request_time
        return max(0.0, self._min_interval - elapsed)

    async def acquire(self) -> None:
        async with self._lock:
            pause = self._wait_time()
            if pause > 0:
                await asyncio.sleep(pause)
            self._last_request_time = time.monotonic()

    def acquire_sync(self) -> None:
        """Blocking acquire for calls made from worker threads."""
        pause = self._wait_time()
        if pause > 0:
            time.sleep(pause)
        self._last_request_time = time.monotonic()


class RetryError(Exception):
    """A retried call kept failing; ``last_exception`` holds the final error."""

    def __init__(self, message: str, last_exception: Exception | None = None) -> None:
        super().__init__(message)
        self.last_exception = last_exception


def _backoff_schedule(max_retries: int, base_delay: float) -> list[float | None]:
    """Delay to sleep after each failed attempt; None marks the final attempt."""
    return [base_delay * (2**n) for n in range(max_retries)] + [None]


def _exhausted(func: Callable[..., object], attempts: int, error: Exception | None) -> RetryError:
    return RetryError(f"All {attempts} attempts failed for {func.__name__}", last_exception=error)


def with_retry(
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_RETRY_BASE_DELAY,
    retry_on: tuple[type[Exception], ...] = (Exception,),
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Retry a blocking call with exponential backoff.

    The call is attempted ``max_retries + 1`` times. Exceptions outside
    ``retry_on`` propagate immediately; exhausting the attempts raises
    :class:`RetryError` carrying the last failure.
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            schedule = _backoff_schedule(max_retries, base_delay)
            failure: Exception | None = None
            for attempt, delay in enumerate(schedule, start=1):
                try:
                    return func(*args, **kwargs)
                except retry_on as e:
                    failure = e
                    if delay is None:
                        break
                    logger.warning(
                        "%s attempt %d/%d failed (%s); sleeping %.1fs",
                        func.__name__,
                        attempt,
                        len(schedule),
                        e,
                        delay,
                    )
                    time.sleep(delay)
            raise _exhausted(func, len(schedule), failure)

        return wrapper

    return decorator


def with_async_retry(
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_RETRY_BASE_DELAY,
    retry_on: tuple[type[Exception], ...] = (Exception,),
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Async counterpart of :func:`with_retry`."""

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            schedule = _backoff_schedule(max_retries, base_delay)
            failure: Exception | None = None
            for attempt, delay in enumerate(schedule, start=1):
                try:
                    return await func(*args, **kwargs)
                except retry_on as e:
                    failure = e
                    if delay is None:
                        break
                    logger.warning(
                        "%s attempt %d/%d failed (%s); sleeping %.1fs",
                        func.__name__,
                        attempt,
                        len(schedule),
                        e,
                        delay,
                    )
                    await asyncio.sleep(delay)
            raise _exhausted(func, len(schedule), failure)

        return wrapper

    return decorator
