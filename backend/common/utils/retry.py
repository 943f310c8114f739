"""Bounded retry with exponential backoff for idempotent database reads."""

import functools
import logging
import time

from django.conf import settings
from django.db import InterfaceError, OperationalError, close_old_connections, connection

from common.exceptions import UpstreamUnavailableError

logger = logging.getLogger(__name__)

TRANSIENT_DB_ERRORS = (OperationalError, InterfaceError)


def retry_on_db_error(func=None, *, attempts: int = None, backoff: float = None):
    """
    Retry a read-only function when the database connection fails.

    Only wrap functions that are safe to run more than once. Writes must
    surface their failure to the caller instead.

    Args:
        attempts: Total tries (default: settings.DB_READ_RETRY_ATTEMPTS)
        backoff: Initial delay in seconds, doubled after every failure
            (default: settings.DB_READ_RETRY_BACKOFF)

    Raises:
        UpstreamUnavailableError: once every attempt has failed
    """
    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            max_attempts = attempts or getattr(settings, "DB_READ_RETRY_ATTEMPTS", 3)
            delay = backoff if backoff is not None else getattr(settings, "DB_READ_RETRY_BACKOFF", 0.2)

            for attempt in range(1, max_attempts + 1):
                try:
                    return fn(*args, **kwargs)
                except TRANSIENT_DB_ERRORS as e:
                    if attempt == max_attempts:
                        logger.error("%s failed after %d attempts: %s", fn.__name__, attempt, e)
                        raise UpstreamUnavailableError() from e
                    logger.warning(
                        "%s failed (attempt %d/%d), retrying in %.2fs: %s",
                        fn.__name__, attempt, max_attempts, delay, e,
                    )
                    if not connection.in_atomic_block:
                        close_old_connections()
                    time.sleep(delay)
                    delay *= 2

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator
