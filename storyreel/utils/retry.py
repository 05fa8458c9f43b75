"""
Async Retry with Exponential Backoff
Used for scene image downloads, where CDNs and upstream image services
fail transiently.
"""

import asyncio
import functools
import random
from typing import Callable, Optional, Tuple, Type

from .logger import get_logger

logger = get_logger()

# Upper bound for a server-provided Retry-After
MAX_RETRY_AFTER_SECONDS = 30.0


def backoff_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float = 2.0,
    jitter: bool = True,
) -> float:
    """Delay before retry number ``attempt + 1`` (attempt is 0-based)."""
    delay = min(base_delay * (exponential_base ** attempt), max_delay)
    if jitter:
        delay *= 0.5 + random.random()
    return delay


def retry_after_seconds(exc: BaseException) -> Optional[float]:
    """Retry-After header of an HTTP error, when present and numeric."""
    headers = getattr(exc, "headers", None)
    if not headers:
        return None
    value = headers.get("Retry-After")
    try:
        return min(float(value), MAX_RETRY_AFTER_SECONDS)
    except (TypeError, ValueError):
        return None


def retry_async(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    on_retry: Optional[Callable[[BaseException, int], None]] = None
):
    """
    Retry an async callable on ``retryable_exceptions``.

    The call is attempted ``max_retries + 1`` times; the last error is
    re-raised. Other exceptions propagate on the first occurrence. A
    Retry-After header on the error overrides the computed backoff.
    """
    def decorator(func):
        name = getattr(func, "__qualname__", repr(func))

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as exc:
                    if attempt >= max_retries:
                        logger.error(f"{name} failed after {attempt + 1} attempts: {exc}")
                        raise

                    delay = retry_after_seconds(exc)
                    if delay is None:
                        delay = backoff_delay(attempt, base_delay, max_delay, exponential_base, jitter)

                    attempt += 1
                    logger.warning(
                        f"Retry {attempt}/{max_retries} for {name} in {delay:.1f}s: "
                        f"{str(exc)[:100] or type(exc).__name__}"
                    )
                    if on_retry:
                        on_retry(exc, attempt)
                    await asyncio.sleep(delay)

        return wrapper
    return decorator
