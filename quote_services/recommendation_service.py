"""
RecommendationService -- generate and select vendor recommendations.

Responsibility:
    Resolve the requested items to categories, read the vendor snapshot
    (active vendors with their historical cost and delivery averages), hand
    it to the ranker, and persist the request with its ranked batch.
    Selection marks one recommendation as chosen.

Architecture position:
    Services -- imperative shell over VendorRecommendationRanker.
    Flush-only.  The facade runs recommend() in one transaction (REPEATABLE
    READ on PostgreSQL) so every factor comes from the same snapshot.

Invariants enforced:
    - The batch is written in one flush; ranks are 1..N.
    - select() changes only the chosen record and is idempotent.  Selecting
      another record of the same request leaves earlier selections alone.

Failure modes:
    - EmptyItemSetError, ValidationError (urgency, ids), ItemNotFoundError.
    - RecommendationNotFoundError on select.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from quote_engines.recommendation import VendorCandidate, VendorRecommendationRanker
from quote_kernel.domain.clock import Clock
from quote_kernel.domain.records import Recommendation
from quote_kernel.domain.tenant import TenantContext
from quote_kernel.domain.values import Urgency, parse_uuid
from quote_kernel.exceptions import EmptyItemSetError, RecommendationNotFoundError
from quote_kernel.logging_config import get_logger
from quote_kernel.models.audit_event import AuditAction
from quote_kernel.models.recommendation import (
    RecommendationModel,
    RecommendationRequestModel,
)
from quote_kernel.selectors.catalog_selector import CatalogSelector
from quote_kernel.selectors.history_selector import HistorySelector
from quote_kernel.services.auditor_service import AuditorService
from quote_kernel.services.base import BaseService

logger = get_logger("services.recommendation")


class RecommendationService(BaseService):
    """Ranks vendors for a request and records selections."""

    def __init__(
        self,
        session: Session,
        clock: Clock,
        auditor: AuditorService,
        ranker: VendorRecommendationRanker | None = None,
    ):
        super().__init__(session, clock)
        self._auditor = auditor
        self._ranker = ranker or VendorRecommendationRanker()
        self._catalog = CatalogSelector(session)
        self._history = HistorySelector(session)

    def recommend(
        self,
        ctx: TenantContext,
        item_ids: Sequence[Any],
        urgency: Any,
    ) -> list[Recommendation]:
        if not item_ids:
            raise EmptyItemSetError()
        parsed_ids = [parse_uuid(i, "item_ids") for i in item_ids]
        level = Urgency.parse(urgency)

        items = self._catalog.get_items(ctx, parsed_ids)
        requested = frozenset(item.category for item in items)
        item_ids_unique = [item.id for item in items]

        vendors = [
            v for v in self._catalog.active_vendors(ctx) if v.categories & requested
        ]
        performance = self._history.vendor_performance(
            ctx, [v.id for v in vendors], item_ids_unique,
        )
        candidates = []
        for vendor in vendors:
            perf = performance.get(vendor.id)
            candidates.append(
                VendorCandidate(
                    vendor_id=vendor.id,
                    categories=vendor.categories,
                    registered_at=vendor.registered_at,
                    vendor_score=vendor.vendor_score,
                    avg_landed_cost=perf.avg_unit_cost if perf else None,
                    avg_delivery_days=perf.avg_delivery_days if perf else None,
                )
            )

        ranked = self._ranker.rank(
            requested_categories=requested,
            urgency=level,
            candidates=candidates,
        )

        now = self.clock.now()
        request = RecommendationRequestModel(
            company_id=ctx.company_id,
            created_by_id=ctx.user_id,
            created_at=now,
            item_ids=[str(i) for i in item_ids_unique],
            urgency=level.value,
        )
        self.session.add(request)
        self.session.flush()

        rows = [
            RecommendationModel(
                company_id=ctx.company_id,
                created_by_id=ctx.user_id,
                created_at=now,
                request_id=request.id,
                vendor_id=scored.vendor_id,
                relevance_score=scored.relevance_score,
                vendor_score=scored.vendor_score,
                reasons=list(scored.reasons),
                factors={name: str(value) for name, value in scored.factors.items()},
                rank=scored.rank,
                was_selected=False,
            )
            for scored in ranked
        ]
        self.session.add_all(rows)
        self.session.flush()

        self._auditor.record(
            ctx,
            "RecommendationRequest",
            request.id,
            AuditAction.VENDOR_RECOMMENDATIONS_GENERATED,
            {
                "urgency": level.value,
                "item_count": len(item_ids_unique),
                "vendor_ids": [str(r.vendor_id) for r in rows],
            },
        )
        logger.info(
            "recommendations_generated",
            extra={
                "request_id": str(request.id),
                "urgency": level.value,
                "item_count": len(item_ids_unique),
                "recommendation_count": len(rows),
            },
        )
        return [row.to_dto() for row in rows]

    def select(self, ctx: TenantContext, recommendation_id: UUID) -> Recommendation:
        recommendation_id = parse_uuid(recommendation_id, "recommendation_id")
        row = self.session.execute(
            select(RecommendationModel)
            .where(
                RecommendationModel.id == recommendation_id,
                RecommendationModel.company_id == ctx.company_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if row is None:
            raise RecommendationNotFoundError(recommendation_id)

        if row.was_selected:
            return row.to_dto()

        row.was_selected = True
        row.selected_at = self.clock.now()
        row.selected_by_id = ctx.user_id
        self.session.flush()

        self._auditor.record(
            ctx,
            "Recommendation",
            row.id,
            AuditAction.VENDOR_RECOMMENDATION_SELECTED,
            {"request_id": str(row.request_id), "vendor_id": str(row.vendor_id), "rank": row.rank},
        )
        logger.info(
            "recommendation_selected",
            extra={"recommendation_id": str(row.id), "rank": row.rank},
        )
        return row.to_dto()
