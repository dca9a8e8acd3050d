"""
RecommendationSelector -- read access to ranked vendor recommendations.
"""

from uuid import UUID

from sqlalchemy import select

from quote_kernel.domain.records import Recommendation
from quote_kernel.domain.tenant import TenantContext
from quote_kernel.exceptions import RecommendationNotFoundError
from quote_kernel.models.recommendation import RecommendationModel
from quote_kernel.selectors.base import BaseSelector

DEFAULT_LIST_LIMIT = 50


class RecommendationSelector(BaseSelector):
    """Tenant-scoped recommendation queries."""

    def get(self, ctx: TenantContext, recommendation_id: UUID) -> Recommendation:
        row = self.session.execute(
            select(RecommendationModel).where(
                RecommendationModel.id == recommendation_id,
                RecommendationModel.company_id == ctx.company_id,
            )
        ).scalar_one_or_none()
        if row is None:
            raise RecommendationNotFoundError(recommendation_id)
        return row.to_dto()

    def for_request(self, ctx: TenantContext, request_id: UUID) -> list[Recommendation]:
        """One request's recommendations in rank order."""
        rows = self.session.execute(
            select(RecommendationModel)
            .where(
                RecommendationModel.company_id == ctx.company_id,
                RecommendationModel.request_id == request_id,
            )
            .order_by(RecommendationModel.rank)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def recent(self, ctx: TenantContext, limit: int = DEFAULT_LIST_LIMIT) -> list[Recommendation]:
        """Most recent recommendations across requests, newest first."""
        rows = self.session.execute(
            select(RecommendationModel)
            .where(RecommendationModel.company_id == ctx.company_id)
            .order_by(
                RecommendationModel.created_at.desc(),
                RecommendationModel.request_id,
                RecommendationModel.rank,
            )
            .limit(limit)
        ).scalars().all()
        return [row.to_dto() for row in rows]
