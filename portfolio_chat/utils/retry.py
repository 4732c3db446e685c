"""
RETRY UTILITY
=============

Awaits a coroutine factory and, if it raises a retryable error, tries again
with exponential backoff. Used for provider calls so a throttled or briefly
unavailable upstream doesn't immediately fail the request. Errors that
should_retry rejects are re-raised on the first attempt.

Example:
  text = await with_retry(lambda: chain.ainvoke(inputs), max_retries=2,
                          should_retry=is_transient_error)
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar


logger = logging.getLogger("PortfolioChat")

# Type variable: with_retry returns whatever the awaited call returns.
T = TypeVar("T")


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 0.5,
    should_retry: Optional[Callable[[Exception], bool]] = None,
) -> T:
    """
    Await fn(). If it raises and should_retry(exc) is true, wait initial_delay
    seconds and try again; delay doubles each retry. After max_retries attempts
    (including the first), re-raise the last exception.
    """
    delay = initial_delay
    attempts = max(1, max_retries)

    for attempt in range(attempts):
        try:
            return await fn()
        except Exception as e:
            if attempt == attempts - 1:
                raise
            if should_retry is not None and not should_retry(e):
                raise
            logger.warning(
                "Attempt %s/%s failed (%s). Retrying in %.1fs: %s",
                attempt + 1,
                attempts,
                getattr(fn, "__name__", "call"),
                delay,
                e,
            )
            await asyncio.sleep(delay)
            delay *= 2  # Exponential backoff: 0.5s, 1s, 2s, ...

    raise RuntimeError("with_retry exhausted without a result")
