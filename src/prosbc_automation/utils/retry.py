"""Exponential backoff for transient network failures."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from prosbc_automation.client.errors import NetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_network(
    func: Callable[[], T],
    attempts: int = 3,
    delay_s: float = 0.5,
    what: str = "request",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call *func*, retrying only on :exc:`NetworkError`.

    The delay doubles after each failed attempt.  Every other exception
    (authentication, validation, token) propagates on the first occurrence.

    Args:
        func: Zero-argument callable to invoke.
        attempts: Total number of attempts (>= 1).
        delay_s: Delay before the second attempt, in seconds.
        what: Label used in log messages.
        sleep: Sleep function used between attempts.

    Returns:
        Whatever *func* returns.

    Raises:
        NetworkError: The last failure once *attempts* are exhausted.
    """
    retryer = Retrying(
        retry=retry_if_exception_type(NetworkError),
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(multiplier=delay_s),
        before_sleep=before_sleep_log(logger, logging.DEBUG),
        sleep=sleep,
        reraise=True,
    )
    logger.debug("Running %s with up to %d attempts", what, max(1, attempts))
    return retryer(func)
