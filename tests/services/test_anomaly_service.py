"""
Tests for price anomaly evaluation through the service layer.

Covers:
- Baseline from price history (window, per unit, per company)
- One stored evaluation per quote and item
- Multi-item RFQs, zero quantities and missing baselines are skipped
- Explanations attached only to anomalous prices
- Acknowledgement and listing filters
"""

import threading
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from quote_config.schema import EvaluationConfig
from quote_engines.anomaly import AnomalyThresholds
from quote_kernel.domain.values import AnomalySeverity, QuoteStatus
from quote_kernel.exceptions import (
    AnomalyNotFoundError,
    ItemNotFoundError,
    QuoteNotFoundError,
    ValidationError,
)
from quote_kernel.models.audit_event import AuditAction
from quote_kernel.services.auditor_service import AuditorService
from quote_services.anomaly_service import HistoricalBaselineProvider, PriceAnomalyService
from quote_services.evaluation_service import QuoteEvaluationService
from quote_services.explanation import ExplanationService
from quote_services.quote_lifecycle_service import QuoteSubmission


def _submit(service, ctx, setup, base="50000", gst="18", transport="2000"):
    return service.submit_quote(
        ctx,
        QuoteSubmission(
            rfq_id=setup["rfq_id"], vendor_id=setup["vendor_id"],
            base_price=base, gst_percent=gst, transport_cost=transport,
        ),
    )


class RecordingGenerator:
    """Text generator stub that remembers its prompts."""

    def __init__(self, text="Raw material costs rose sharply this quarter."):
        self.text = text
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        return self.text


class TestEvaluateOnSubmit:

    def test_no_history_no_evaluation(self, service, ctx, steel_setup):
        result = _submit(service, ctx, steel_setup)

        assert result.anomalies == ()
        assert service.list_anomalies(ctx) == []

    def test_high_anomaly(self, service, ctx, catalog, steel_setup):
        catalog.price_history(steel_setup["item_id"], "50000")

        result = _submit(service, ctx, steel_setup)

        [anomaly] = result.anomalies
        assert anomaly.severity == AnomalySeverity.HIGH
        assert anomaly.expected_price == Decimal("50000.00")
        assert anomaly.actual_price == Decimal("61000.00")
        assert anomaly.deviation == Decimal("0.2200")
        assert anomaly.quote_id == result.quote.id
        assert anomaly.item_id == steel_setup["item_id"]
        assert anomaly.acknowledged is False

    def test_extremely_high_anomaly(self, service, ctx, catalog, steel_setup):
        catalog.price_history(steel_setup["item_id"], "40000")

        result = _submit(service, ctx, steel_setup)

        assert result.anomalies[0].severity == AnomalySeverity.EXTREMELY_HIGH

    def test_normal_result_is_stored(self, service, ctx, catalog, steel_setup):
        catalog.price_history(steel_setup["item_id"], "60000")

        result = _submit(service, ctx, steel_setup)

        [anomaly] = result.anomalies
        assert anomaly.severity == AnomalySeverity.NORMAL
        assert anomaly.ai_explanation is None
        assert [a.id for a in service.list_anomalies(ctx)] == [anomaly.id]

    def test_baseline_is_window_average(self, service, ctx, catalog, steel_setup, deterministic_clock):
        item_id = steel_setup["item_id"]
        now = deterministic_clock.now()
        catalog.price_history(item_id, "48000", recorded_at=now - timedelta(days=10))
        catalog.price_history(item_id, "52000", recorded_at=now - timedelta(days=100))
        catalog.price_history(item_id, "1000", recorded_at=now - timedelta(days=200))

        result = _submit(service, ctx, steel_setup)

        assert result.anomalies[0].expected_price == Decimal("50000.00")

    def test_history_outside_window_is_no_baseline(
        self, service, ctx, catalog, steel_setup, deterministic_clock, captured_logs,
    ):
        catalog.price_history(
            steel_setup["item_id"], "50000",
            recorded_at=deterministic_clock.now() - timedelta(days=181),
        )

        result = _submit(service, ctx, steel_setup)

        assert result.anomalies == ()
        skipped = [r for r in captured_logs() if r["message"] == "anomaly_evaluation_skipped"]
        assert skipped[0]["reason"] == "no_baseline"

    def test_other_company_history_ignored(self, service, ctx, other_catalog, steel_setup):
        other_catalog.price_history(steel_setup["item_id"], "10")

        assert _submit(service, ctx, steel_setup).anomalies == ()

    def test_per_unit_price(self, service, ctx, catalog):
        item_id = catalog.item("Cement 50kg", "cement")
        catalog.price_history(item_id, "400")
        setup = {
            "rfq_id": catalog.rfq("Cement", [(item_id, 100)]),
            "vendor_id": catalog.vendor("Cem Co", ["cement"]),
        }

        result = _submit(service, ctx, setup, base="40000", gst="0", transport="0")

        [anomaly] = result.anomalies
        assert anomaly.actual_price == Decimal("400.00")
        assert anomaly.severity == AnomalySeverity.NORMAL

    def test_multi_item_rfq_skipped(self, service, ctx, catalog, captured_logs):
        steel = catalog.item("Steel", "steel")
        cement = catalog.item("Cement", "cement")
        catalog.price_history(steel, "1")
        setup = {
            "rfq_id": catalog.rfq("Mixed", [(steel, 1), (cement, 1)]),
            "vendor_id": catalog.vendor("Builder Supply", ["steel", "cement"]),
        }

        result = _submit(service, ctx, setup)

        assert result.anomalies == ()
        skipped = [r for r in captured_logs() if r["message"] == "anomaly_evaluation_skipped"]
        assert skipped[0]["reason"] == "multi_item_rfq"
        assert skipped[0]["item_count"] == 2

    def test_zero_quantity_skipped(self, service, ctx, catalog, captured_logs):
        item_id = catalog.item("Steel", "steel")
        catalog.price_history(item_id, "100")
        setup = {
            "rfq_id": catalog.rfq("Zero qty", [(item_id, 0)]),
            "vendor_id": catalog.vendor("Acme Steel", ["steel"]),
        }

        result = _submit(service, ctx, setup)

        assert result.quote.status == QuoteStatus.SUBMITTED
        assert result.anomalies == ()
        assert service.list_anomalies(ctx, quote_id=result.quote.id) == []
        skipped = [r for r in captured_logs() if r["message"] == "anomaly_evaluation_skipped"]
        assert skipped[0]["reason"] == "non_positive_quantity"
        assert all(r["message"] != "anomaly_evaluation_deferred" for r in captured_logs())

    def test_custom_thresholds(self, session_factory, ctx, catalog, steel_setup, deterministic_clock):
        strict = QuoteEvaluationService(
            session_factory,
            config=EvaluationConfig(
                anomaly=AnomalyThresholds(high=Decimal("0.05"), extreme=Decimal("0.10")),
            ),
            clock=deterministic_clock,
            sleep=lambda s: None,
        )
        catalog.price_history(steel_setup["item_id"], "55000")

        result = _submit(strict, ctx, steel_setup)

        assert result.anomalies[0].severity == AnomalySeverity.EXTREMELY_HIGH


class TestReevaluation:

    def test_evaluate_is_idempotent(self, service, ctx, catalog, steel_setup):
        catalog.price_history(steel_setup["item_id"], "50000")
        result = _submit(service, ctx, steel_setup)

        catalog.price_history(steel_setup["item_id"], "90000")
        again = service.evaluate_quote(ctx, result.quote.id)

        assert [a.id for a in again] == [a.id for a in result.anomalies]
        assert again[0].expected_price == Decimal("50000.00")
        assert len(service.list_anomalies(ctx)) == 1

    def test_late_baseline(self, service, ctx, catalog, steel_setup):
        quote = _submit(service, ctx, steel_setup).quote
        catalog.price_history(steel_setup["item_id"], "50000")

        [anomaly] = service.evaluate_quote(ctx, quote.id)

        assert anomaly.severity == AnomalySeverity.HIGH

    def test_unknown_quote(self, service, ctx):
        with pytest.raises(QuoteNotFoundError):
            service.evaluate_quote(ctx, uuid4())


class TestDirectEvaluation:
    """PriceAnomalyService.evaluate with explicit prices."""

    def _service(self, session, clock, generator=None, timeout=5.0):
        return PriceAnomalyService(
            session,
            clock,
            AuditorService(session, clock),
            HistoricalBaselineProvider(session),
            explanations=ExplanationService(generator, timeout_seconds=timeout),
        )

    def test_worked_example(self, service, session, ctx, steel_setup, deterministic_clock):
        quote = _submit(service, ctx, steel_setup).quote
        anomalies = self._service(session, deterministic_clock)

        anomaly = anomalies.evaluate(
            ctx, quote.id, steel_setup["item_id"], Decimal("139.90"), Decimal("100.00"),
        )
        session.commit()

        assert anomaly.severity == AnomalySeverity.HIGH
        assert anomaly.deviation == Decimal("0.3990")
        trail = AuditorService(session).get_trail(ctx, "Anomaly", anomaly.id)
        assert [e.action for e in trail] == [AuditAction.PRICE_ANOMALY_DETECTED]
        assert trail[0].payload["severity"] == "HIGH"

    def test_normal_not_audited(self, service, session, ctx, steel_setup, deterministic_clock):
        quote = _submit(service, ctx, steel_setup).quote

        anomaly = self._service(session, deterministic_clock).evaluate(
            ctx, quote.id, steel_setup["item_id"], Decimal("100"), Decimal("100"),
        )

        assert anomaly.severity == AnomalySeverity.NORMAL
        assert AuditorService(session).get_trail(ctx, "Anomaly", anomaly.id) == ()

    def test_unknown_item(self, service, session, ctx, steel_setup, deterministic_clock):
        quote = _submit(service, ctx, steel_setup).quote

        with pytest.raises(ItemNotFoundError):
            self._service(session, deterministic_clock).evaluate(
                ctx, quote.id, uuid4(), Decimal("120"), Decimal("100"),
            )

    def test_invalid_price(self, service, session, ctx, steel_setup, deterministic_clock):
        quote = _submit(service, ctx, steel_setup).quote

        with pytest.raises(ValidationError):
            self._service(session, deterministic_clock).evaluate(
                ctx, quote.id, steel_setup["item_id"], Decimal("120"), Decimal("0"),
            )

    def test_explanation_attached(self, service, session, ctx, steel_setup, deterministic_clock):
        quote = _submit(service, ctx, steel_setup).quote
        generator = RecordingGenerator()

        anomaly = self._service(session, deterministic_clock, generator).evaluate(
            ctx, quote.id, steel_setup["item_id"], Decimal("139.90"), Decimal("100.00"),
        )

        assert anomaly.ai_explanation == "Raw material costs rose sharply this quarter."
        assert "Deviation: 39.9%" in generator.prompts[0]

    def test_slow_generator_does_not_block(self, service, session, ctx, steel_setup, deterministic_clock):
        quote = _submit(service, ctx, steel_setup).quote
        release = threading.Event()

        class SlowGenerator:
            def generate(self, prompt):
                release.wait(5)
                return "too late"

        try:
            anomaly = self._service(session, deterministic_clock, SlowGenerator(), timeout=0.05).evaluate(
                ctx, quote.id, steel_setup["item_id"], Decimal("150"), Decimal("100"),
            )
        finally:
            release.set()

        assert anomaly.severity == AnomalySeverity.EXTREMELY_HIGH
        assert anomaly.ai_explanation is None


class TestExplanationThroughFacade:

    def test_only_anomalies_are_explained(self, session_factory, ctx, catalog, deterministic_clock):
        generator = RecordingGenerator()
        service = QuoteEvaluationService(
            session_factory,
            config=EvaluationConfig(),
            clock=deterministic_clock,
            text_generator=generator,
            sleep=lambda s: None,
        )
        item_id = catalog.item("Steel", "steel")
        catalog.price_history(item_id, "50000")
        setup = {
            "rfq_id": catalog.rfq("Steel", [(item_id, 1)]),
            "vendor_id": catalog.vendor("Acme", ["steel"]),
        }

        normal = _submit(service, ctx, setup, base="40000", transport="0")
        high = _submit(service, ctx, setup)

        assert normal.anomalies[0].ai_explanation is None
        assert high.anomalies[0].ai_explanation == generator.text
        assert len(generator.prompts) == 1


class TestAcknowledge:

    def test_acknowledge(self, service, session, ctx, catalog, steel_setup):
        catalog.price_history(steel_setup["item_id"], "50000")
        [anomaly] = _submit(service, ctx, steel_setup).anomalies

        acknowledged = service.acknowledge_anomaly(ctx, anomaly.id)

        assert acknowledged.acknowledged is True
        assert acknowledged.acknowledged_at is not None
        assert acknowledged.severity == anomaly.severity

    def test_acknowledge_is_idempotent(self, service, session, ctx, catalog, steel_setup, deterministic_clock):
        catalog.price_history(steel_setup["item_id"], "50000")
        [anomaly] = _submit(service, ctx, steel_setup).anomalies

        service.acknowledge_anomaly(ctx, anomaly.id)
        deterministic_clock.advance(3600)
        again = service.acknowledge_anomaly(ctx, anomaly.id)

        assert again.acknowledged is True
        trail = AuditorService(session).get_trail(ctx, "Anomaly", anomaly.id)
        assert [e.action for e in trail] == [
            AuditAction.PRICE_ANOMALY_DETECTED,
            AuditAction.PRICE_ANOMALY_ACKNOWLEDGED,
        ]

    def test_unknown_anomaly(self, service, ctx):
        with pytest.raises(AnomalyNotFoundError):
            service.acknowledge_anomaly(ctx, uuid4())

    def test_other_company(self, service, ctx, other_ctx, catalog, steel_setup):
        catalog.price_history(steel_setup["item_id"], "50000")
        [anomaly] = _submit(service, ctx, steel_setup).anomalies

        with pytest.raises(AnomalyNotFoundError):
            service.acknowledge_anomaly(other_ctx, anomaly.id)


class TestListAnomalies:

    @pytest.fixture
    def two_anomalies(self, service, ctx, catalog, steel_setup, deterministic_clock):
        catalog.price_history(steel_setup["item_id"], "50000")
        first = _submit(service, ctx, steel_setup)
        deterministic_clock.advance(60)
        second = _submit(service, ctx, steel_setup, base="70000")
        return first, second

    def test_newest_first(self, service, ctx, two_anomalies):
        first, second = two_anomalies

        listed = service.list_anomalies(ctx)

        assert [a.quote_id for a in listed] == [second.quote.id, first.quote.id]

    def test_filter_by_quote(self, service, ctx, two_anomalies):
        first, _ = two_anomalies

        listed = service.list_anomalies(ctx, quote_id=first.quote.id)

        assert [a.id for a in listed] == [first.anomalies[0].id]

    def test_unacknowledged_only(self, service, ctx, two_anomalies):
        first, second = two_anomalies
        service.acknowledge_anomaly(ctx, first.anomalies[0].id)

        listed = service.list_anomalies(ctx, unacknowledged_only=True)

        assert [a.id for a in listed] == [second.anomalies[0].id]

    def test_limit(self, service, ctx, two_anomalies):
        assert len(service.list_anomalies(ctx, limit=1)) == 1

    @pytest.mark.parametrize("limit", [0, -1, True, "5"])
    def test_invalid_limit(self, service, ctx, limit):
        with pytest.raises(ValidationError):
            service.list_anomalies(ctx, limit=limit)

    def test_other_company_sees_nothing(self, service, other_ctx, two_anomalies):
        assert service.list_anomalies(other_ctx) == []
