"""Retry utilities with exponential backoff for SQLite lock contention."""

import logging
import sqlite3
from typing import Callable, TypeVar

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from claim_workflow.config.settings import DB_BUSY_RETRIES

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_database_locked(exc: BaseException) -> bool:
    """True for the transient 'database is locked/busy' OperationalError."""
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    message = str(exc).lower()
    return "locked" in message or "busy" in message


def with_db_busy_retry(
    max_attempts: int | None = None,
    min_wait: float = 0.05,
    max_wait: float = 1.0,
    multiplier: float = 0.1,
):
    """Decorator that retries acquiring the SQLite write lock with exponential backoff.

    Only lock contention is retried. Anything raised after the lock is held
    (validation errors, Conflict) propagates unchanged.

    Args:
        max_attempts: Maximum number of attempts (default CLAIM_WORKFLOW_DB_BUSY_RETRIES).
        min_wait: Minimum wait between retries in seconds.
        max_wait: Maximum wait between retries in seconds.
        multiplier: Base multiplier for exponential backoff.
    """
    attempts = max_attempts if max_attempts is not None else max(DB_BUSY_RETRIES, 1)

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @retry(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=multiplier, min=min_wait, max=max_wait),
            retry=retry_if_exception(is_database_locked),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            reraise=True,
        )
        def wrapper(*args, **kwargs) -> T:
            return func(*args, **kwargs)

        return wrapper

    return decorator
