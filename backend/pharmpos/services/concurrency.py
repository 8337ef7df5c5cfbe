# Overview: Retry helper for load-merge-save cycles against a record store.

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError


logger = logging.getLogger(__name__)

T = TypeVar("T")

CONFLICT_ERRORS = (OperationalError, StaleDataError)


def run_with_retry(
    func: Callable[[], T],
    *,
    rollback: Callable[[], None] | None = None,
    attempts: int = 3,
    backoff_base: float = 0.1,
) -> T:
    """
    Run a load-merge-save cycle, rerunning it on write conflicts.

    Retries on OperationalError (locked database) and StaleDataError
    (version_id mismatch). rollback discards the failed attempt's pending
    writes before the next one; func must reload its inputs on every call.
    """
    for attempt in range(attempts):
        try:
            return func()
        except CONFLICT_ERRORS as exc:
            if rollback is not None:
                rollback()
            if attempt >= attempts - 1:
                raise
            logger.warning("Write conflict (%s), retrying attempt %d of %d", type(exc).__name__, attempt + 2, attempts)
            time.sleep(backoff_base * (2 ** attempt))
    raise ValueError("attempts must be at least 1")
