"""
AnomalySelector -- read access to price anomaly evaluations.
"""

from uuid import UUID

from sqlalchemy import select

from quote_kernel.domain.records import Anomaly
from quote_kernel.domain.tenant import TenantContext
from quote_kernel.exceptions import AnomalyNotFoundError
from quote_kernel.models.anomaly import AnomalyModel
from quote_kernel.selectors.base import BaseSelector

DEFAULT_LIST_LIMIT = 20


class AnomalySelector(BaseSelector):
    """Tenant-scoped anomaly queries."""

    def get(self, ctx: TenantContext, anomaly_id: UUID) -> Anomaly:
        row = self.session.execute(
            select(AnomalyModel).where(
                AnomalyModel.id == anomaly_id,
                AnomalyModel.company_id == ctx.company_id,
            )
        ).scalar_one_or_none()
        if row is None:
            raise AnomalyNotFoundError(anomaly_id)
        return row.to_dto()

    def find_for_quote_item(
        self, ctx: TenantContext, quote_id: UUID, item_id: UUID,
    ) -> Anomaly | None:
        row = self.session.execute(
            select(AnomalyModel).where(
                AnomalyModel.company_id == ctx.company_id,
                AnomalyModel.quote_id == quote_id,
                AnomalyModel.item_id == item_id,
            )
        ).scalar_one_or_none()
        return row.to_dto() if row is not None else None

    def search(
        self,
        ctx: TenantContext,
        quote_id: UUID | None = None,
        unacknowledged_only: bool = False,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> list[Anomaly]:
        """Newest first, at most ``limit`` records."""
        stmt = select(AnomalyModel).where(AnomalyModel.company_id == ctx.company_id)
        if quote_id is not None:
            stmt = stmt.where(AnomalyModel.quote_id == quote_id)
        if unacknowledged_only:
            stmt = stmt.where(AnomalyModel.acknowledged.is_(False))
        stmt = stmt.order_by(AnomalyModel.created_at.desc(), AnomalyModel.id).limit(limit)
        return [row.to_dto() for row in self.session.execute(stmt).scalars().all()]
