import functools
import logging
import time
from typing import Callable, Optional, Tuple, Type

from tollroute.logging_setup import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)


def backoff_delay(attempt: int, base_delay: float, max_delay: float, mode: str = "exponential") -> float:
    """Delay to wait after failed attempt number ``attempt`` (1-based)."""
    if mode == "linear":
        delay = base_delay * attempt
    elif mode == "exponential":
        delay = base_delay * (2 ** (attempt - 1))
    else:
        raise ValueError(f"Unknown backoff mode: {mode}")
    return min(delay, max_delay)


def retry_with_backoff(
    max_attempts: int,
    base_delay: float,
    max_delay: float,
    mode: str = "exponential",
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
    operation: Optional[str] = None,
):
    """Retry the wrapped call on ``retry_on`` errors, re-raising the last one when attempts run out."""
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    def decorator(func):
        name = operation or func.__name__

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except retry_on as exc:
                    if attempt == max_attempts:
                        logger.error(
                            "retry_exhausted",
                            extra={"operation": name, "attempts": attempt, "error": str(exc)},
                        )
                        raise
                    delay = backoff_delay(attempt, base_delay, max_delay, mode)
                    logger.warning(
                        "retry_scheduled",
                        extra={"operation": name, "attempt": attempt, "delay_seconds": delay, "error": str(exc)},
                    )
                    sleep(delay)

        return wrapper

    return decorator
