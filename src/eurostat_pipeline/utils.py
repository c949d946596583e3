"""Small helpers shared by the acquisition code."""

import functools
import time
from typing import Callable, List, Sequence, Tuple, TypeVar

from eurostat_pipeline.logging_config import create_logger

logger = create_logger(__name__)

T = TypeVar("T")


def retry(
    max_attempts: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    exceptions: Tuple[type, ...] = (Exception,),
) -> Callable:
    """
    Retry decorator with exponential backoff.

    Only the listed exceptions are retried; anything else propagates on the
    first attempt. The last failure is re-raised unchanged.

    :param max_attempts: Total number of attempts, including the first
    :param delay: Seconds to wait before the second attempt
    :param backoff: Multiplier applied to the delay after each retry
    :param exceptions: Exception types that trigger a retry
    :return: Decorated function
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            current_delay = delay
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_attempts:
                        logger.error(f"{func.__qualname__}: giving up after {max_attempts} attempts")
                        raise
                    logger.warning(
                        f"🔁 {func.__qualname__} attempt {attempt}/{max_attempts} failed ({e}); "
                        f"retrying in {current_delay:.1f}s"
                    )
                    time.sleep(current_delay)
                    current_delay *= backoff

        return wrapper

    return decorator


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    """Split ``items`` into consecutive lists of at most ``size`` elements."""
    if size < 1:
        raise ValueError(f"Chunk size must be positive, got {size}")
    items = list(items)
    return [items[i:i + size] for i in range(0, len(items), size)]
