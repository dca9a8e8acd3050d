"""
PriceAnomalyService -- persist price anomaly evaluations.

Responsibility:
    Compare a quote's price for an item with the item's expected price,
    store the classification once per (quote, item) pair, attach an optional
    generated explanation, and record acknowledgements.

Architecture position:
    Services -- imperative shell over PriceAnomalyDetector.  Flush-only.

Invariants enforced:
    - At most one AnomalyModel per (quote_id, item_id); evaluating a pair
      again returns the stored record unchanged.
    - No baseline (BaselineProvider returns None) means no evaluation.
    - Quote-level evaluation compares the per-unit landed cost, which is
      only defined for single-item RFQs; multi-item RFQs are skipped.
    - acknowledge() is idempotent: the first call records who and when,
      later calls return the record unchanged.

Failure modes:
    - ValidationError for non-positive prices.
    - QuoteNotFoundError, ItemNotFoundError, AnomalyNotFoundError.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from quote_engines.anomaly import PriceAnomalyDetector
from quote_kernel.db.types import round_money
from quote_kernel.domain.clock import Clock
from quote_kernel.domain.records import Anomaly
from quote_kernel.domain.tenant import TenantContext
from quote_kernel.domain.values import AnomalySeverity, parse_uuid
from quote_kernel.exceptions import AnomalyNotFoundError
from quote_kernel.logging_config import get_logger
from quote_kernel.models.anomaly import AnomalyModel
from quote_kernel.models.audit_event import AuditAction
from quote_kernel.selectors.anomaly_selector import AnomalySelector
from quote_kernel.selectors.catalog_selector import CatalogSelector
from quote_kernel.selectors.history_selector import HistorySelector
from quote_kernel.selectors.quote_selector import QuoteSelector
from quote_kernel.services.auditor_service import AuditorService
from quote_kernel.services.base import BaseService
from quote_services.explanation import ExplanationService

logger = get_logger("services.anomaly")


class BaselineProvider(Protocol):
    """Source of the expected unit price of an item."""

    def expected_price(
        self, ctx: TenantContext, item_id: UUID, as_of: datetime,
    ) -> Decimal | None: ...


class HistoricalBaselineProvider:
    """Average of recorded unit prices within a lookback window."""

    def __init__(self, session: Session, lookback_days: int = 180, min_samples: int = 1):
        self._history = HistorySelector(session)
        self.lookback_days = lookback_days
        self.min_samples = min_samples

    def expected_price(
        self, ctx: TenantContext, item_id: UUID, as_of: datetime,
    ) -> Decimal | None:
        return self._history.expected_price(
            ctx,
            item_id,
            as_of,
            lookback_days=self.lookback_days,
            min_samples=self.min_samples,
        )


class PriceAnomalyService(BaseService):
    """Evaluates, stores and acknowledges price anomalies."""

    def __init__(
        self,
        session: Session,
        clock: Clock,
        auditor: AuditorService,
        baseline: BaselineProvider,
        detector: PriceAnomalyDetector | None = None,
        explanations: ExplanationService | None = None,
    ):
        super().__init__(session, clock)
        self._auditor = auditor
        self._baseline = baseline
        self._detector = detector or PriceAnomalyDetector()
        self._explanations = explanations or ExplanationService()
        self._anomalies = AnomalySelector(session)
        self._quotes = QuoteSelector(session)
        self._catalog = CatalogSelector(session)

    def evaluate(
        self,
        ctx: TenantContext,
        quote_id: UUID,
        item_id: UUID,
        actual_price: Any,
        expected_price: Any,
    ) -> Anomaly:
        """Classify one price against its baseline and store the result."""
        quote_id = parse_uuid(quote_id, "quote_id")
        item_id = parse_uuid(item_id, "item_id")
        assessment = self._detector.evaluate(
            expected_price=expected_price, actual_price=actual_price,
        )

        self._quotes.get(ctx, quote_id)
        self._catalog.get_items(ctx, [item_id])

        existing = self._anomalies.find_for_quote_item(ctx, quote_id, item_id)
        if existing is not None:
            logger.info(
                "anomaly_already_evaluated",
                extra={"anomaly_id": str(existing.id), "quote_id": str(quote_id)},
            )
            return existing

        explanation = self._explanations.explain(
            item_id,
            assessment.expected_price,
            assessment.actual_price,
            assessment.severity,
        )

        row = AnomalyModel(
            company_id=ctx.company_id,
            created_by_id=ctx.user_id,
            created_at=self.clock.now(),
            quote_id=quote_id,
            item_id=item_id,
            expected_price=assessment.expected_price,
            actual_price=assessment.actual_price,
            deviation=assessment.deviation,
            severity=assessment.severity.value,
            ai_explanation=explanation,
            acknowledged=False,
        )
        self.session.add(row)
        self.session.flush()

        if assessment.is_anomalous:
            self._auditor.record(
                ctx,
                "Anomaly",
                row.id,
                AuditAction.PRICE_ANOMALY_DETECTED,
                {
                    "quote_id": str(quote_id),
                    "item_id": str(item_id),
                    "severity": assessment.severity.value,
                    "deviation": str(assessment.deviation),
                },
            )
            logger.warning(
                "anomaly_detected",
                extra={
                    "anomaly_id": str(row.id),
                    "quote_id": str(quote_id),
                    "item_id": str(item_id),
                    "severity": assessment.severity.value,
                    "deviation": assessment.deviation,
                    "explained": explanation is not None,
                },
            )
        else:
            logger.info(
                "anomaly_evaluated",
                extra={
                    "anomaly_id": str(row.id),
                    "quote_id": str(quote_id),
                    "severity": AnomalySeverity.NORMAL.value,
                },
            )
        return row.to_dto()

    def evaluate_quote(self, ctx: TenantContext, quote_id: UUID) -> list[Anomaly]:
        """
        Evaluate a quote against the baseline of its RFQ's item.

        Returns an empty list when the RFQ has several items, its only line
        has no positive quantity, or the item has no baseline yet.
        """
        quote = self._quotes.get(ctx, parse_uuid(quote_id, "quote_id"))
        rfq = self._catalog.get_rfq(ctx, quote.rfq_id)
        line = rfq.single_line
        if line is None:
            logger.info(
                "anomaly_evaluation_skipped",
                extra={
                    "quote_id": str(quote.id),
                    "reason": "multi_item_rfq",
                    "item_count": len(rfq.lines),
                },
            )
            return []

        if line.quantity <= 0:
            logger.info(
                "anomaly_evaluation_skipped",
                extra={
                    "quote_id": str(quote.id),
                    "reason": "non_positive_quantity",
                    "quantity": str(line.quantity),
                },
            )
            return []

        expected = self._baseline.expected_price(ctx, line.item_id, self.clock.now())
        if expected is None or expected <= 0:
            logger.info(
                "anomaly_evaluation_skipped",
                extra={"quote_id": str(quote.id), "reason": "no_baseline"},
            )
            return []

        actual = round_money(quote.landed_cost / line.quantity)
        return [self.evaluate(ctx, quote.id, line.item_id, actual, expected)]

    def acknowledge(self, ctx: TenantContext, anomaly_id: UUID) -> Anomaly:
        anomaly_id = parse_uuid(anomaly_id, "anomaly_id")
        row = self.session.execute(
            select(AnomalyModel)
            .where(
                AnomalyModel.id == anomaly_id,
                AnomalyModel.company_id == ctx.company_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if row is None:
            raise AnomalyNotFoundError(anomaly_id)

        if row.acknowledged:
            return row.to_dto()

        row.acknowledged = True
        row.acknowledged_at = self.clock.now()
        row.acknowledged_by_id = ctx.user_id
        self.session.flush()

        self._auditor.record(
            ctx, "Anomaly", row.id, AuditAction.PRICE_ANOMALY_ACKNOWLEDGED,
            {"quote_id": str(row.quote_id), "severity": row.severity},
        )
        logger.info("anomaly_acknowledged", extra={"anomaly_id": str(row.id)})
        return row.to_dto()
