"""
Exponential backoff for Spotify and Apple Music calls.

Only RetryableError (rate limits, 5xx, network failures) is retried.
Missing credentials and other 4xx responses surface on the first attempt.
"""
import logging
import time
from functools import wraps
from typing import Callable, Iterator, Tuple, Type

logger = logging.getLogger(__name__)


class RetryableError(Exception):
    """A provider failure that may succeed if the call is repeated."""


class RateLimitError(RetryableError):
    """HTTP 429. retry_after is the provider's Retry-After hint in seconds (0 if absent)."""

    def __init__(self, message: str, retry_after: float = 0.0):
        super().__init__(message)
        self.retry_after = retry_after


class ServerError(RetryableError):
    """HTTP 5xx from a provider."""


class NetworkError(RetryableError):
    """Connection refused, reset or timed out."""


def backoff_delays(initial_delay: float, multiplier: float, max_delay: float) -> Iterator[float]:
    """Yield initial_delay, initial_delay*multiplier, ... capped at max_delay."""
    delay = min(initial_delay, max_delay)
    while True:
        yield delay
        delay = min(delay * multiplier, max_delay)


def _wait_for(error: Exception, scheduled: float, max_delay: float) -> float:
    # A Retry-After hint can lengthen the wait but never past max_delay
    hint = getattr(error, "retry_after", 0.0) if isinstance(error, RateLimitError) else 0.0
    if hint:
        return min(max(hint, scheduled), max_delay)
    return scheduled


def retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    backoff_multiplier: float = 2.0,
    max_delay: float = 30.0,
    exceptions: Tuple[Type[Exception], ...] = (RetryableError,),
) -> Callable[[Callable], Callable]:
    """
    Decorate a call so it is attempted up to max_retries + 1 times.

    The last failure is re-raised unchanged, so callers can still map
    RetryableError to a 503.

    Example:
        fetch = retry_with_backoff(max_retries=2, initial_delay=0.5)(request_json)
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            delays = backoff_delays(initial_delay, backoff_multiplier, max_delay)
            attempt = 0
            while True:
                attempt += 1
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt > max_retries:
                        logger.error("%s gave up after %d attempts: %s", func.__name__, attempt, e)
                        raise
                    wait = _wait_for(e, next(delays), max_delay)
                    logger.warning(
                        "%s attempt %d/%d failed, sleeping %.1fs: %s",
                        func.__name__, attempt, max_retries + 1, wait, e,
                    )
                    time.sleep(wait)

        return wrapper
    return decorator
