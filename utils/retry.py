"""Retry with exponential backoff. No global state."""

from __future__ import annotations

import time
import logging
from typing import Callable, TypeVar

from core.exceptions import ProviderCallError

logger = logging.getLogger(__name__)
T = TypeVar("T")


def with_retry(
    fn: Callable[[], T],
    max_attempts: int = 2,
    delay_sec: float = 1.0,
    backoff: bool = True,
    retry_exceptions: tuple[type[Exception], ...] = (ProviderCallError,),
    before_attempt: Callable[[int], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Execute fn; on retry_exceptions retry with exponential backoff.
    before_attempt(attempt_index) runs ahead of every try and may raise to abort.
    Raises the last exception after max_attempts.
    """
    attempts = max(1, int(max_attempts))
    for attempt in range(attempts):
        if before_attempt is not None:
            before_attempt(attempt)
        try:
            return fn()
        except retry_exceptions as e:
            if attempt >= attempts - 1:
                raise
            wait = delay_sec * (2**attempt) if backoff else delay_sec
            logger.warning(
                "Retry attempt %s/%s after %.2fs: %s",
                attempt + 1,
                attempts,
                wait,
                e,
            )
            if wait > 0:
                sleep(wait)
    raise RuntimeError("retry exhausted")
