"""Utility functions and helpers for the rebootctl application."""
import logging
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

T = TypeVar('T')

logger = logging.getLogger("rebootctl.utils")


class RetryError(Exception):
    """Raised when every attempt of a retried call failed."""

    def __init__(self, message: str, attempts: int, last_exception: Exception):
        super().__init__(message)
        self.attempts = attempts
        self.last_exception = last_exception


def retry(
    func: Callable[[], T],
    attempts: int,
    interval: float,
    sleep: Callable[[float], object] = time.sleep,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    before_attempt: Optional[Callable[[], None]] = None,
    label: str = "Operation",
) -> T:
    """Call ``func`` up to ``attempts`` times with a fixed pause between failures.

    Args:
        func: Callable to invoke
        attempts: Maximum number of attempts
        interval: Seconds to wait between attempts
        sleep: Function used to wait (injectable for tests and cancellation)
        exceptions: Exceptions that trigger a retry
        before_attempt: Hook run before every attempt, may raise to stop retrying
        label: Human readable name used in log messages

    Returns:
        Whatever ``func`` returned on the first successful attempt

    Raises:
        RetryError: If all attempts failed
    """
    last_exception = None
    for attempt in range(1, attempts + 1):
        if before_attempt:
            before_attempt()
        logger.debug("%s attempt %d/%d...", label, attempt, attempts)
        try:
            return func()
        except exceptions as e:
            last_exception = e
            logger.warning("%s failed (attempt %d/%d): %s", label, attempt, attempts, e)
            if attempt < attempts:
                logger.info("Waiting %s seconds before retrying...", interval)
                sleep(interval)

    raise RetryError(
        f"{label} failed after {attempts} attempts. Last error: {last_exception}",
        attempts,
        last_exception,
    ) from last_exception


def poll_until(
    check: Callable[[], bool],
    attempts: int,
    interval: float,
    sleep: Callable[[float], object] = time.sleep,
    before_attempt: Optional[Callable[[], None]] = None,
    label: str = "condition",
) -> bool:
    """Evaluate ``check`` up to ``attempts`` times; True as soon as it passes."""
    for attempt in range(1, attempts + 1):
        if before_attempt:
            before_attempt()
        logger.debug("Attempt %d/%d: checking %s...", attempt, attempts, label)
        if check():
            return True
        if attempt < attempts:
            sleep(interval)
    return False


def format_duration(seconds: float) -> str:
    """Render a runtime as ``1h 2m 3s`` or ``2m 3s``."""
    seconds = int(seconds)
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    return f"{minutes}m {secs}s"
