"""
ExplanationService -- bounded call to the optional text generator.

Responsibility:
    Ask an external text generator to explain why a quoted price deviates
    from its baseline.  The generator is opaque: it receives a prompt and
    returns text.  It may be absent, slow or failing, and none of that may
    fail an anomaly evaluation.

Invariants enforced:
    - The generator runs on a shared pool of at most ``max_workers``
      threads and is abandoned after ``timeout_seconds``; the caller then
      gets None.  An abandoned call keeps its worker until the generator
      returns, so a hung generator can hold every worker; later calls then
      queue, time out and are cancelled without starting a new thread.
    - Any exception from the generator is logged and becomes None.
    - Only anomalous prices (HIGH, EXTREMELY_HIGH) are sent for explanation;
      NORMAL results carry no explanation.
    - No database session is ever touched from the worker thread.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from decimal import Decimal
from typing import Protocol, runtime_checkable
from uuid import UUID

from quote_kernel.domain.values import AnomalySeverity
from quote_kernel.logging_config import get_logger

logger = get_logger("services.explanation")


@runtime_checkable
class TextGenerator(Protocol):
    """Opaque text-generation collaborator."""

    def generate(self, prompt: str) -> str: ...


def build_prompt(
    item_id: UUID,
    expected_price: Decimal,
    actual_price: Decimal,
    severity: AnomalySeverity,
) -> str:
    deviation = (actual_price - expected_price) / expected_price * Decimal("100")
    return (
        "A vendor quote was flagged by procurement price checks.\n"
        f"Item: {item_id}\n"
        f"Expected price: {expected_price}\n"
        f"Quoted price: {actual_price}\n"
        f"Deviation: {deviation.quantize(Decimal('0.1'))}%\n"
        f"Severity: {severity.value}\n"
        "In two or three sentences, explain likely reasons for the difference "
        "and what the buyer should verify before approving."
    )


class ExplanationService:
    """Wraps a TextGenerator with a timeout and failure isolation."""

    def __init__(
        self,
        generator: TextGenerator | None = None,
        timeout_seconds: float = 5.0,
        enabled: bool = True,
        max_workers: int = 4,
    ):
        self._generator = generator
        self._timeout = timeout_seconds
        self._enabled = enabled
        self._max_workers = max_workers
        self._executor: ThreadPoolExecutor | None = None
        self._lock = threading.Lock()

    @property
    def available(self) -> bool:
        return self._enabled and self._generator is not None

    def _pool(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="explanation",
                )
            return self._executor

    def close(self) -> None:
        """Stop the worker pool; queued calls are cancelled, running ones are not awaited."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

    def explain(
        self,
        item_id: UUID,
        expected_price: Decimal,
        actual_price: Decimal,
        severity: AnomalySeverity,
    ) -> str | None:
        """Explanation text, or None when unavailable, failed or timed out."""
        if not self.available or severity is AnomalySeverity.NORMAL:
            return None

        prompt = build_prompt(item_id, expected_price, actual_price, severity)
        try:
            future = self._pool().submit(self._generator.generate, prompt)
            text = future.result(timeout=self._timeout)
        except FutureTimeoutError:
            # still queued behind stuck workers: drop it
            future.cancel()
            logger.warning(
                "explanation_timed_out",
                extra={"item_id": str(item_id), "timeout_seconds": self._timeout},
            )
            return None
        except Exception:
            logger.warning(
                "explanation_failed", extra={"item_id": str(item_id)}, exc_info=True,
            )
            return None

        if not isinstance(text, str) or not text.strip():
            logger.info("explanation_empty", extra={"item_id": str(item_id)})
            return None
        return text.strip()
