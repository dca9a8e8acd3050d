"""
QuoteNumberService -- per-company quote numbers from an atomic counter row.

Responsibility:
    Issue quote numbers of the form ``QT-20261018-000042`` that are unique
    within a company and increase in issuance order.  The sequence part
    comes from a dedicated counter table, one row per company.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by QuoteLifecycleService.submit().

Invariants enforced:
    - The counter is advanced with a single
      ``UPDATE ... SET current_value = current_value + 1``; the database
      serializes concurrent increments on the row.  Counting existing
      quotes and adding one is NEVER used.
    - The increment belongs to the caller's transaction: visible only on
      commit, returned on rollback.
    - The row is created on first use inside a savepoint; a concurrent
      creator's IntegrityError rolls back only the savepoint and the
      increment is retried.

Failure modes:
    - QuoteNumberConflictError after ``max_retries`` attempts that each
      failed with OperationalError (lock timeout) or IntegrityError.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, insert, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Mapped, Session, mapped_column

from quote_kernel.db.base import Base, UUIDString
from quote_kernel.domain.clock import Clock
from quote_kernel.exceptions import QuoteNumberConflictError
from quote_kernel.logging_config import get_logger
from quote_kernel.services.base import BaseService
from quote_kernel.services.retry import backoff_delay

logger = get_logger("services.quote_number")


class QuoteSequenceCounter(Base):
    """
    Quote sequence counter table.

    One row per company; ``current_value`` is the last issued sequence.
    """

    __tablename__ = "quote_sequence_counters"

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class QuoteNumberService(BaseService):
    """
    Allocates quote sequence values and formats quote numbers.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT guarantee gap-free numbering across rolled-back
          transactions on every backend; it guarantees uniqueness and
          issuance order.

    Usage:
        numbers = QuoteNumberService(session, clock)
        quote_number = numbers.next_quote_number(company_id)
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        *,
        prefix: str = "QT",
        date_format: str = "%Y%m%d",
        sequence_width: int = 6,
        max_retries: int = 5,
        retry_base_delay: float = 0.01,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(session, clock)
        self.prefix = prefix
        self.date_format = date_format
        self.sequence_width = sequence_width
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._sleep = sleep

    def _increment(self, company_id: UUID) -> int:
        savepoint = self.session.begin_nested()
        try:
            result = self.session.execute(
                update(QuoteSequenceCounter)
                .where(QuoteSequenceCounter.company_id == company_id)
                .values(current_value=QuoteSequenceCounter.current_value + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                # First quote of this company
                self.session.execute(
                    insert(QuoteSequenceCounter).values(
                        id=uuid4(), company_id=company_id, current_value=1,
                    )
                )
                value = 1
            else:
                value = self.session.execute(
                    select(QuoteSequenceCounter.current_value)
                    .where(QuoteSequenceCounter.company_id == company_id)
                ).scalar_one()
            savepoint.commit()
        except (IntegrityError, OperationalError):
            if savepoint.is_active:
                savepoint.rollback()
            raise
        return value

    def next_value(self, company_id: UUID) -> int:
        """
        Advance the company's counter and return the new value (>= 1).

        Raises:
            QuoteNumberConflictError: when every attempt failed.
        """
        last_error: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                value = self._increment(company_id)
            except (IntegrityError, OperationalError) as exc:
                last_error = exc
                logger.debug(
                    "quote_sequence_retry",
                    extra={
                        "company_id": str(company_id),
                        "attempt": attempt,
                        "error_type": type(exc).__name__,
                    },
                )
                if attempt < self.max_retries:
                    self._sleep(backoff_delay(attempt, self.retry_base_delay, 1.0))
                continue

            assert value > 0, "quote sequence must be strictly positive"
            logger.debug(
                "quote_sequence_allocated",
                extra={"company_id": str(company_id), "value": value},
            )
            return value

        logger.error(
            "quote_sequence_exhausted",
            extra={"company_id": str(company_id), "attempts": self.max_retries},
        )
        raise QuoteNumberConflictError(
            company_id,
            self.max_retries,
            f"{type(last_error).__name__}: {last_error}",
        ) from last_error

    def format_number(self, sequence: int) -> str:
        issued_on = self.clock.now()
        return (
            f"{self.prefix}-{issued_on.strftime(self.date_format)}"
            f"-{sequence:0{self.sequence_width}d}"
        )

    def next_quote_number(self, company_id: UUID) -> str:
        """Allocate the next sequence value and format it as a quote number."""
        return self.format_number(self.next_value(company_id))

    def current_value(self, company_id: UUID) -> int | None:
        """Last issued sequence value, or None before the first quote."""
        return self.session.execute(
            select(QuoteSequenceCounter.current_value)
            .where(QuoteSequenceCounter.company_id == company_id)
        ).scalar_one_or_none()
