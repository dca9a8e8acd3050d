"""
QuoteSelector -- read access to quotes.

Quotes of one RFQ are returned in comparison order: cheapest landed cost
first, earliest submission next, quote number last.
"""

from uuid import UUID

from sqlalchemy import select

from quote_kernel.domain.records import Quote
from quote_kernel.domain.tenant import TenantContext
from quote_kernel.exceptions import QuoteNotFoundError
from quote_kernel.models.quote import QuoteModel
from quote_kernel.selectors.base import BaseSelector


class QuoteSelector(BaseSelector):

    def get(self, ctx: TenantContext, quote_id: UUID) -> Quote:
        row = self.session.execute(
            select(QuoteModel).where(
                QuoteModel.id == quote_id,
                QuoteModel.company_id == ctx.company_id,
            )
        ).scalar_one_or_none()
        if row is None:
            raise QuoteNotFoundError(quote_id)
        return row.to_dto()

    def list_for_rfq(self, ctx: TenantContext, rfq_id: UUID) -> list[Quote]:
        rows = self.session.execute(
            select(QuoteModel)
            .where(
                QuoteModel.rfq_id == rfq_id,
                QuoteModel.company_id == ctx.company_id,
            )
            .order_by(
                QuoteModel.landed_cost,
                QuoteModel.created_at,
                QuoteModel.quote_number,
            )
        ).scalars().all()
        return [row.to_dto() for row in rows]
