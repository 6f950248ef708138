"""Retry utilities using tenacity."""

import logging
import sqlite3

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger("bookmark_insights")


def is_lock_contention(exc: BaseException) -> bool:
    """True for SQLite 'database is locked' / 'database is busy' errors."""
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    message = str(exc).lower()
    return "locked" in message or "busy" in message


def with_retry(
    max_attempts: int = 3,
    min_wait: float = 0.1,
    max_wait: float = 2,
    retry_on=is_lock_contention,
):
    """Decorator factory for retrying writes with exponential backoff.

    Only errors matching ``retry_on`` are retried; anything else propagates
    on the first attempt.
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=min_wait, min=min_wait, max=max_wait),
        retry=retry_if_exception(retry_on),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
