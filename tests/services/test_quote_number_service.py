"""
Tests for QuoteNumberService.

Covers:
- Number format and per-company sequences
- Transactional behaviour of the counter
- Retry and exhaustion on transient database errors
"""

from datetime import datetime, timezone
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from quote_kernel.domain.clock import DeterministicClock
from quote_kernel.exceptions import QuoteNumberConflictError
from quote_kernel.services.quote_number_service import QuoteNumberService


def _locked() -> OperationalError:
    return OperationalError("UPDATE quote_sequence_counters", {}, Exception("database is locked"))


class TestQuoteNumberFormat:

    def test_first_numbers(self, session, deterministic_clock):
        numbers = QuoteNumberService(session, deterministic_clock)
        company = uuid4()

        assert numbers.next_quote_number(company) == "QT-20260115-000001"
        assert numbers.next_quote_number(company) == "QT-20260115-000002"
        assert numbers.current_value(company) == 2

    def test_date_comes_from_clock(self, session):
        clock_time = datetime(2026, 10, 18, 23, 59, tzinfo=timezone.utc)
        numbers = QuoteNumberService(session, DeterministicClock(clock_time))

        assert numbers.next_quote_number(uuid4()) == "QT-20261018-000001"

    def test_custom_format(self, session, deterministic_clock):
        numbers = QuoteNumberService(
            session, deterministic_clock, prefix="RFQ", date_format="%y%m", sequence_width=3,
        )

        assert numbers.next_quote_number(uuid4()) == "RFQ-2601-001"

    def test_width_is_a_minimum(self, session, deterministic_clock):
        numbers = QuoteNumberService(session, deterministic_clock, sequence_width=2)

        assert numbers.format_number(12345) == "QT-20260115-12345"

    def test_companies_are_independent(self, session, deterministic_clock):
        numbers = QuoteNumberService(session, deterministic_clock)
        first, second = uuid4(), uuid4()

        numbers.next_value(first)
        numbers.next_value(first)

        assert numbers.next_value(second) == 1
        assert numbers.next_value(first) == 3

    def test_no_counter_before_first_quote(self, session, deterministic_clock):
        assert QuoteNumberService(session, deterministic_clock).current_value(uuid4()) is None


class TestCounterTransactions:

    def test_rollback_returns_the_value(self, session_factory, deterministic_clock):
        company = uuid4()

        with session_factory() as sess:
            assert QuoteNumberService(sess, deterministic_clock).next_value(company) == 1
            sess.rollback()

        with session_factory() as sess:
            assert QuoteNumberService(sess, deterministic_clock).next_value(company) == 1
            sess.commit()

        with session_factory() as sess:
            assert QuoteNumberService(sess, deterministic_clock).next_value(company) == 2
            sess.commit()

    def test_committed_values_survive(self, session_factory, deterministic_clock):
        company = uuid4()
        for _ in range(3):
            with session_factory() as sess:
                QuoteNumberService(sess, deterministic_clock).next_value(company)
                sess.commit()

        with session_factory() as sess:
            assert QuoteNumberService(sess, deterministic_clock).current_value(company) == 3


class TestCounterRetry:

    def test_transient_failure_is_retried(self, session, deterministic_clock, monkeypatch):
        sleeps = []
        numbers = QuoteNumberService(session, deterministic_clock, sleep=sleeps.append)
        original = QuoteNumberService._increment
        failures = iter([_locked(), _locked()])

        def flaky(self, company_id):
            error = next(failures, None)
            if error is not None:
                raise error
            return original(self, company_id)

        monkeypatch.setattr(QuoteNumberService, "_increment", flaky)

        assert numbers.next_value(uuid4()) == 1
        assert sleeps == [0.01, 0.02]

    def test_exhaustion_raises_conflict(self, session, deterministic_clock, monkeypatch):
        sleeps = []
        company = uuid4()
        numbers = QuoteNumberService(
            session, deterministic_clock, max_retries=4, sleep=sleeps.append,
        )

        def always_locked(self, company_id):
            raise _locked()

        monkeypatch.setattr(QuoteNumberService, "_increment", always_locked)

        with pytest.raises(QuoteNumberConflictError) as exc_info:
            numbers.next_value(company)

        assert exc_info.value.attempts == 4
        assert exc_info.value.company_id == company
        assert exc_info.value.code == "QUOTE_NUMBER_CONFLICT"
        assert sleeps == [0.01, 0.02, 0.04]

    def test_exhaustion_is_logged(self, session, deterministic_clock, monkeypatch, captured_logs):
        numbers = QuoteNumberService(
            session, deterministic_clock, max_retries=2, sleep=lambda s: None,
        )

        def always_locked(self, company_id):
            raise _locked()

        monkeypatch.setattr(QuoteNumberService, "_increment", always_locked)

        with pytest.raises(QuoteNumberConflictError):
            numbers.next_value(uuid4())

        messages = [r["message"] for r in captured_logs()]
        assert messages.count("quote_sequence_retry") == 2
        assert "quote_sequence_exhausted" in messages
