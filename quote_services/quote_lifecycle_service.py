"""
QuoteLifecycleService -- quote submission and the SUBMITTED -> APPROVED move.

Responsibility:
    Submission validates the quote against the tenant's catalog, derives
    the landed cost, allocates the quote number and persists the quote.
    Approval locks the quote, checks it is still SUBMITTED and records the
    approval; on single-item RFQs it also appends the per-unit landed cost
    to the item's price history, which feeds future anomaly baselines.

Architecture position:
    Services -- imperative shell over the landed cost engine.  Flush-only;
    QuoteEvaluationService owns commit/rollback.

Invariants enforced:
    - status SUBMITTED on insert; APPROVED is terminal.
    - is_approved == (status == APPROVED) at every flush.
    - The quote row is read with SELECT ... FOR UPDATE before the approval
      precondition is checked, so two concurrent approvals cannot both pass.

Failure modes:
    - ValidationError for bad prices or delivery_days.
    - RfqNotFoundError / VendorNotFoundError when the references do not
      belong to the tenant (or the vendor is inactive or tombstoned).
    - QuoteNotFoundError, QuoteAlreadyApprovedError on approve.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from quote_engines.landed_cost import LandedCostCalculator
from quote_kernel.db.types import round_money
from quote_kernel.domain.clock import Clock
from quote_kernel.domain.records import Quote
from quote_kernel.domain.tenant import TenantContext
from quote_kernel.domain.values import QuoteStatus, parse_uuid
from quote_kernel.exceptions import (
    QuoteAlreadyApprovedError,
    QuoteNotFoundError,
    ValidationError,
)
from quote_kernel.logging_config import get_logger
from quote_kernel.models.audit_event import AuditAction
from quote_kernel.models.catalog import PriceHistoryModel
from quote_kernel.models.quote import QuoteModel
from quote_kernel.selectors.catalog_selector import CatalogSelector
from quote_kernel.services.auditor_service import AuditorService
from quote_kernel.services.base import BaseService
from quote_kernel.services.quote_number_service import QuoteNumberService

logger = get_logger("services.quote_lifecycle")

PRICE_HISTORY_SOURCE = "approved_quote"


@dataclass(frozen=True)
class QuoteSubmission:
    """Caller input for a new quote."""

    rfq_id: UUID
    vendor_id: UUID
    base_price: Any
    gst_percent: Any
    transport_cost: Any = Decimal("0")
    delivery_days: int | None = None
    terms: str | None = None
    notes: str | None = None


def _validate_delivery_days(value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("delivery_days", "must be an integer", value)
    if value < 0:
        raise ValidationError("delivery_days", "must not be negative", value)
    return value


class QuoteLifecycleService(BaseService):
    """Submits and approves quotes."""

    def __init__(
        self,
        session: Session,
        clock: Clock,
        auditor: AuditorService,
        numbers: QuoteNumberService,
        calculator: LandedCostCalculator | None = None,
    ):
        super().__init__(session, clock)
        self._auditor = auditor
        self._numbers = numbers
        self._calculator = calculator or LandedCostCalculator()
        self._catalog = CatalogSelector(session)

    def submit(self, ctx: TenantContext, submission: QuoteSubmission) -> Quote:
        rfq_id = parse_uuid(submission.rfq_id, "rfq_id")
        vendor_id = parse_uuid(submission.vendor_id, "vendor_id")
        pricing = self._calculator.compute(
            base_price=submission.base_price,
            gst_percent=submission.gst_percent,
            transport_cost=submission.transport_cost,
        )
        delivery_days = _validate_delivery_days(submission.delivery_days)

        self._catalog.get_rfq(ctx, rfq_id)
        self._catalog.get_active_vendor(ctx, vendor_id)

        quote_number = self._numbers.next_quote_number(ctx.company_id)
        now = self.clock.now()

        quote = QuoteModel(
            company_id=ctx.company_id,
            created_by_id=ctx.user_id,
            created_at=now,
            quote_number=quote_number,
            rfq_id=rfq_id,
            vendor_id=vendor_id,
            base_price=pricing.base_price,
            gst_percent=pricing.gst_percent,
            gst_amount=pricing.gst_amount,
            transport_cost=pricing.transport_cost,
            landed_cost=pricing.landed_cost,
            delivery_days=delivery_days,
            terms=submission.terms,
            notes=submission.notes,
            status=QuoteStatus.SUBMITTED.value,
            is_approved=False,
        )
        self.session.add(quote)
        self.session.flush()

        self._auditor.record(
            ctx,
            "Quote",
            quote.id,
            AuditAction.QUOTE_SUBMITTED,
            {
                "quote_number": quote_number,
                "rfq_id": str(rfq_id),
                "vendor_id": str(vendor_id),
                "landed_cost": str(pricing.landed_cost),
            },
        )
        logger.info(
            "quote_submitted",
            extra={
                "quote_id": str(quote.id),
                "quote_number": quote_number,
                "rfq_id": str(rfq_id),
                "vendor_id": str(vendor_id),
                "landed_cost": pricing.landed_cost,
            },
        )
        return quote.to_dto()

    def _lock_quote(self, ctx: TenantContext, quote_id: UUID) -> QuoteModel:
        quote = self.session.execute(
            select(QuoteModel)
            .where(
                QuoteModel.id == quote_id,
                QuoteModel.company_id == ctx.company_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if quote is None:
            raise QuoteNotFoundError(quote_id)
        return quote

    def approve(self, ctx: TenantContext, quote_id: UUID) -> Quote:
        quote_id = parse_uuid(quote_id, "quote_id")
        quote = self._lock_quote(ctx, quote_id)

        if quote.quote_status is QuoteStatus.APPROVED:
            logger.warning(
                "quote_approval_rejected",
                extra={"quote_id": str(quote_id), "current_status": quote.status},
            )
            raise QuoteAlreadyApprovedError(quote_id)

        now = self.clock.now()
        quote.status = QuoteStatus.APPROVED.value
        quote.is_approved = True
        quote.approved_at = now
        quote.approved_by_id = ctx.user_id
        self.session.flush()

        unit_price = self._record_price_history(ctx, quote, now)

        self._auditor.record(
            ctx,
            "Quote",
            quote.id,
            AuditAction.QUOTE_APPROVED,
            {
                "quote_number": quote.quote_number,
                "landed_cost": str(quote.landed_cost),
                "price_history_unit_price": str(unit_price) if unit_price is not None else None,
            },
        )
        logger.info(
            "quote_approved",
            extra={
                "quote_id": str(quote.id),
                "quote_number": quote.quote_number,
                "price_history_recorded": unit_price is not None,
            },
        )
        return quote.to_dto()

    def _record_price_history(self, ctx: TenantContext, quote: QuoteModel, now) -> Decimal | None:
        """Append the per-unit landed cost for single-item RFQs."""
        line = self._catalog.get_rfq(ctx, quote.rfq_id).single_line
        if line is None or line.quantity <= 0:
            return None

        unit_price = round_money(quote.landed_cost / line.quantity)
        self.session.add(
            PriceHistoryModel(
                company_id=ctx.company_id,
                created_by_id=ctx.user_id,
                created_at=now,
                item_id=line.item_id,
                unit_price=unit_price,
                source=PRICE_HISTORY_SOURCE,
                quote_id=quote.id,
                recorded_at=now,
            )
        )
        self.session.flush()
        return unit_price
