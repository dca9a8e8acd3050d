"""
Retry -- bounded exponential backoff for transient persistence failures.

Responsibility:
    Re-run a unit of work when the database reports contention
    (``OperationalError``, e.g. lock timeouts or serialization failures)
    or a unique-key race (``IntegrityError``).  After the last attempt the
    failure is surfaced as a ConflictError carrying the attempt count.

Invariants enforced:
    - At most ``max_attempts`` executions; at least one.
    - Delays double from ``base_delay`` and are capped at ``max_delay``.
    - Only the listed transient exception types are retried.  Domain errors
      (ValidationError, StateError, NotFoundError) propagate at once.

Usage:
    result = run_with_retry(
        lambda: facade._submit_once(...),
        resource="quote",
        max_attempts=3,
        on_retry=session.rollback,
    )
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError

from quote_kernel.exceptions import ConflictError
from quote_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")

TRANSIENT_ERRORS: tuple[type[Exception], ...] = (OperationalError, IntegrityError)


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay before retry number ``attempt`` (1-based), in seconds."""
    return min(max_delay, base_delay * (2 ** (attempt - 1)))


def run_with_retry(
    operation: Callable[[], T],
    *,
    resource: str,
    max_attempts: int = 3,
    base_delay: float = 0.05,
    max_delay: float = 1.0,
    on_retry: Callable[[], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
    error_factory: Callable[[int, str], ConflictError] | None = None,
) -> T:
    """
    Execute ``operation``, retrying transient database failures.

    Args:
        operation: The unit of work.  Must be safe to re-run from scratch.
        resource: Name used in logs and in the ConflictError.
        max_attempts: Total executions allowed.
        base_delay: First backoff delay in seconds.
        max_delay: Cap on a single delay.
        on_retry: Called after each failed attempt before sleeping
            (typically ``session.rollback``).
        sleep: Injectable for tests.
        error_factory: Builds the exhausted-retries error; defaults to
            ConflictError(resource, attempts, reason).

    Raises:
        ConflictError: after ``max_attempts`` transient failures.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    last_error: Exception | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except TRANSIENT_ERRORS as exc:
            last_error = exc
            if on_retry is not None:
                on_retry()
            if attempt == max_attempts:
                break
            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.warning(
                "transient_failure_retrying",
                extra={
                    "resource": resource,
                    "attempt": attempt,
                    "max_attempts": max_attempts,
                    "delay_seconds": delay,
                    "error_type": type(exc).__name__,
                },
            )
            sleep(delay)

    reason = f"{type(last_error).__name__}: {last_error}"
    logger.error(
        "retries_exhausted",
        extra={"resource": resource, "attempts": max_attempts, "error_type": type(last_error).__name__},
    )
    if error_factory is not None:
        raise error_factory(max_attempts, reason) from last_error
    raise ConflictError(resource, max_attempts, reason) from last_error
