"""Retry with exponential backoff. No global state."""

from __future__ import annotations

import time
import logging
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)
T = TypeVar("T")


def with_retry(
    fn: Callable[[], T],
    max_attempts: int = 3,
    delay_sec: float = 2.0,
    backoff: bool = True,
    retry_exceptions: tuple[type[Exception], ...] = (Exception,),
    retry_if: Callable[[T], bool] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Execute fn; on retry_exceptions (or a result for which retry_if is true) retry with
    exponential backoff. Raises the last exception, or returns the last result, after
    max_attempts.
    """
    attempts = max(1, max_attempts)
    for attempt in range(attempts):
        last_attempt = attempt >= attempts - 1
        try:
            result = fn()
        except retry_exceptions as e:
            if last_attempt:
                raise
            reason: object = e
        else:
            if retry_if is None or last_attempt or not retry_if(result):
                return result
            reason = result
        wait = delay_sec * (2**attempt) if backoff else delay_sec
        logger.warning(
            "Retry attempt %s/%s after %.2fs: %s",
            attempt + 1,
            attempts,
            wait,
            reason,
        )
        sleep(wait)
    raise RuntimeError("retry exhausted")
