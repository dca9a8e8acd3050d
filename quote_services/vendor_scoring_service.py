"""
VendorScoringService -- recalculate and store a vendor's score and tier.

The stored score is what the recommendation ranker reads as its trust
factor, so recalculation directly changes future rankings.  Flush-only.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from quote_engines.vendor_scoring import QuoteObservation, VendorScoringEngine
from quote_kernel.domain.clock import Clock
from quote_kernel.domain.records import VendorScore
from quote_kernel.domain.tenant import TenantContext
from quote_kernel.domain.values import parse_uuid
from quote_kernel.exceptions import VendorNotFoundError
from quote_kernel.logging_config import get_logger
from quote_kernel.models.audit_event import AuditAction
from quote_kernel.models.catalog import VendorModel
from quote_kernel.selectors.history_selector import HistorySelector
from quote_kernel.services.auditor_service import AuditorService
from quote_kernel.services.base import BaseService

logger = get_logger("services.vendor_scoring")

HISTORY_LIMIT = 50


class VendorScoringService(BaseService):

    def __init__(
        self,
        session: Session,
        clock: Clock,
        auditor: AuditorService,
        engine: VendorScoringEngine | None = None,
    ):
        super().__init__(session, clock)
        self._auditor = auditor
        self._engine = engine or VendorScoringEngine()
        self._history = HistorySelector(session)

    def recalculate(self, ctx: TenantContext, vendor_id: UUID) -> VendorScore:
        vendor_id = parse_uuid(vendor_id, "vendor_id")
        vendor = self.session.execute(
            select(VendorModel)
            .where(
                VendorModel.id == vendor_id,
                VendorModel.company_id == ctx.company_id,
                VendorModel.deleted_at.is_(None),
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if vendor is None:
            raise VendorNotFoundError(vendor_id)

        history = self._history.vendor_quote_history(ctx, vendor_id, limit=HISTORY_LIMIT)
        result = self._engine.score(
            [
                QuoteObservation(
                    landed_cost=h.landed_cost,
                    approved=h.approved,
                    response_days=h.response_days,
                )
                for h in history
            ]
        )

        vendor.vendor_score = result.overall_score
        vendor.tier = result.tier.value
        self.session.flush()

        now = self.clock.now()
        self._auditor.record(
            ctx,
            "Vendor",
            vendor.id,
            AuditAction.VENDOR_SCORE_CALCULATED,
            {
                "overall_score": str(result.overall_score),
                "tier": result.tier.value,
                "data_points": result.data_points,
            },
        )
        logger.info(
            "vendor_score_calculated",
            extra={
                "vendor_id": str(vendor.id),
                "overall_score": result.overall_score,
                "tier": result.tier.value,
                "data_points": result.data_points,
            },
        )
        return VendorScore(
            vendor_id=vendor.id,
            overall_score=result.overall_score,
            tier=result.tier,
            price_score=result.price_score,
            response_score=result.response_score,
            consistency_score=result.consistency_score,
            data_points=result.data_points,
            explanation=result.explanation,
            calculated_at=now,
        )
