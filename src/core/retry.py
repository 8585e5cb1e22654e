"""Retry helper with configurable backoff, jitter and a cancellable wait."""

import random
import threading
import time
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

from src.core.logger import logger

T = TypeVar("T")


class RetriesExhausted(Exception):
    """Raised when every attempt failed or the wait was cancelled.

    Attributes:
        attempts (int): Number of attempts actually made.
        last_error (Exception): The error raised by the final attempt.
        cancelled (bool): True when a stop event cut the retry loop short.
    """

    def __init__(self, attempts: int, last_error: Exception, cancelled: bool = False) -> None:
        self.attempts = attempts
        self.last_error = last_error
        self.cancelled = cancelled
        super().__init__(f"gave up after {attempts} attempt(s): {last_error}")


def backoff_delay(attempt: int, delay: float, multiplier: float = 1.0, jitter: float = 0.0) -> float:
    """
    Compute the wait that follows a failed attempt.

    Args:
        attempt (int): 1-based number of the attempt that just failed.
        delay (float): Base delay in seconds.
        multiplier (float): Growth factor per attempt. ``1.0`` gives a fixed delay.
        jitter (float): Upper bound of a uniform random term added to the delay.

    Returns:
        float: Seconds to wait before the next attempt.
    """
    wait = delay * (multiplier ** (attempt - 1))
    if jitter > 0:
        wait += random.uniform(0, jitter)
    return wait


def call_with_retries(
    func: Callable[[], T],
    max_attempts: int = 3,
    delay: float = 15.0,
    multiplier: float = 1.0,
    jitter: float = 0.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    stop_event: Optional[threading.Event] = None,
    sleep: Callable[[float], Any] = time.sleep,
    label: str = "",
) -> T:
    """
    Call ``func`` until it succeeds or ``max_attempts`` calls have failed.

    The backoff wait only happens between attempts. When ``stop_event`` is
    given the wait is ``stop_event.wait(...)`` so setting the event aborts the
    loop immediately instead of sleeping out the backoff.

    Args:
        func: Zero-argument callable to invoke.
        max_attempts: Total number of calls allowed.
        delay: Base backoff in seconds.
        multiplier: Exponential growth factor for the backoff.
        jitter: Random jitter bound in seconds.
        retry_on: Exception types that count as a failed attempt; anything else propagates.
        stop_event: Optional cancellation event.
        sleep: Wait function used when no ``stop_event`` is given.
        label: Name used in log lines.

    Returns:
        Whatever ``func`` returns on its first successful call.

    Raises:
        RetriesExhausted: If every attempt failed or the wait was cancelled.
    """
    name = label or getattr(func, "__name__", "call")
    last_error: Optional[Exception] = None

    for attempt in range(1, max_attempts + 1):
        if stop_event is not None and stop_event.is_set():
            raise RetriesExhausted(attempt - 1, last_error or RuntimeError("stopped"), cancelled=True)
        try:
            return func()
        except retry_on as e:
            last_error = e
            if attempt == max_attempts:
                logger.error(f"'{name}' failed after {max_attempts} attempts: {e}")
                break

            wait = backoff_delay(attempt, delay, multiplier, jitter)
            logger.warning(
                f"'{name}' failed (attempt {attempt}/{max_attempts}): {e}. "
                f"Retrying in {wait:.1f} seconds..."
            )
            if stop_event is not None:
                if stop_event.wait(wait):
                    logger.info(f"'{name}' retry wait cancelled by shutdown")
                    raise RetriesExhausted(attempt, e, cancelled=True) from e
            else:
                sleep(wait)

    raise RetriesExhausted(max_attempts, last_error)
