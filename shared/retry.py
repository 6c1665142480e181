"""
Retry mechanism for remote calls.
"""

import asyncio
import functools
from typing import Any, Optional, Callable, Awaitable

from shared.logging import get_logger


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(self, max_attempts: int = 2, delay: float = 60.0, backoff: float = 1.0):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.delay = delay
        self.backoff = backoff

    @classmethod
    def single_retry(cls, delay: float) -> "RetryConfig":
        """One retry after a fixed delay."""
        return cls(max_attempts=2, delay=delay)

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given failed attempt."""
        return max(0.0, self.delay * (self.backoff ** (attempt - 1)))


def retry_on_exception(exceptions: tuple = (Exception,),
                       config: Optional[RetryConfig] = None,
                       on_retry: Optional[Callable[[int, BaseException], None]] = None) -> Callable:
    """Decorator for retrying async functions on exceptions.

    The exception from the final attempt propagates unchanged.
    """

    if config is None:
        config = RetryConfig()

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        name = getattr(func, "__name__", "call")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            logger = get_logger(f"retry.{name}")

            for attempt in range(1, config.max_attempts + 1):
                try:
                    result = await func(*args, **kwargs)
                    if attempt > 1:
                        logger.info("Retry succeeded", attempt=attempt, function=name)
                    return result

                except exceptions as e:
                    if attempt == config.max_attempts:
                        logger.error(
                            "All retry attempts exhausted",
                            attempt=attempt,
                            max_attempts=config.max_attempts,
                            function=name,
                            error=str(e)
                        )
                        raise

                    delay = config.delay_for(attempt)
                    logger.warning(
                        "Attempt failed, waiting before retry",
                        attempt=attempt,
                        delay=delay,
                        function=name,
                        error=str(e)
                    )
                    if on_retry is not None:
                        on_retry(attempt, e)

                    await asyncio.sleep(delay)

        return wrapper

    return decorator
