"""
HistorySelector -- historical prices and vendor performance snapshots.

Responsibility:
    The read side of anomaly baselines, recommendation factors and vendor
    scoring.  Every method is a plain aggregate over committed history, so
    callers that need one consistent view call them inside a single
    transaction (REPEATABLE READ on PostgreSQL).

Invariants enforced:
    - Aggregates are converted to Decimal through ``str``; SQLite returns
      floats for AVG and the values are rounded before use so results agree
      across backends.
    - Only APPROVED and SUBMITTED quotes exist, and both count as price and
      delivery history; a quote need not be approved to shape a ranking.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from quote_kernel.db.types import round_money, round_score
from quote_kernel.domain.tenant import TenantContext
from quote_kernel.domain.values import QuoteStatus
from quote_kernel.models.catalog import PriceHistoryModel, RfqItemModel, RfqModel
from quote_kernel.models.quote import QuoteModel
from quote_kernel.selectors.base import BaseSelector

SECONDS_PER_DAY = Decimal("86400")


@dataclass(frozen=True)
class VendorPerformance:
    """Average per-unit landed cost and delivery days of a vendor on relevant RFQs."""

    vendor_id: UUID
    avg_unit_cost: Decimal | None
    avg_delivery_days: Decimal | None


@dataclass(frozen=True)
class QuoteHistoryEntry:
    landed_cost: Decimal
    approved: bool
    response_days: Decimal


def _as_decimal(value) -> Decimal | None:
    return None if value is None else Decimal(str(value))


class HistorySelector(BaseSelector):
    """Aggregates over price history and past quotes."""

    def expected_price(
        self,
        ctx: TenantContext,
        item_id: UUID,
        as_of: datetime,
        lookback_days: int = 180,
        min_samples: int = 1,
    ) -> Decimal | None:
        """
        Average recorded unit price of an item within the lookback window.

        Returns None when fewer than ``min_samples`` prices were recorded,
        meaning there is no baseline and anomaly detection is skipped.
        """
        since = as_of - timedelta(days=lookback_days)
        average, count = self.session.execute(
            select(func.avg(PriceHistoryModel.unit_price), func.count(PriceHistoryModel.id))
            .where(
                PriceHistoryModel.company_id == ctx.company_id,
                PriceHistoryModel.item_id == item_id,
                PriceHistoryModel.recorded_at >= since,
                PriceHistoryModel.recorded_at <= as_of,
            )
        ).one()
        if count < min_samples or average is None:
            return None
        return round_money(_as_decimal(average))

    def vendor_performance(
        self,
        ctx: TenantContext,
        vendor_ids: list[UUID],
        item_ids: list[UUID],
    ) -> dict[UUID, VendorPerformance]:
        """
        Per-vendor averages over quotes on RFQs containing any of the items.

        Delivery days average over every such quote.  Unit cost averages
        landed cost / quantity over quotes on single-item RFQs only; a quote
        on a multi-item RFQ has no per-item price and leaves it None.
        Vendors without such quotes are absent from the result.
        """
        if not vendor_ids or not item_ids:
            return {}

        relevant_rfqs = (
            select(RfqItemModel.rfq_id)
            .where(
                RfqItemModel.company_id == ctx.company_id,
                RfqItemModel.item_id.in_(item_ids),
            )
        )
        delivery_rows = self.session.execute(
            select(QuoteModel.vendor_id, func.avg(QuoteModel.delivery_days))
            .where(
                QuoteModel.company_id == ctx.company_id,
                QuoteModel.vendor_id.in_(vendor_ids),
                QuoteModel.rfq_id.in_(relevant_rfqs),
            )
            .group_by(QuoteModel.vendor_id)
        ).all()

        single_item_rfqs = (
            select(RfqItemModel.rfq_id)
            .where(RfqItemModel.company_id == ctx.company_id)
            .group_by(RfqItemModel.rfq_id)
            .having(func.count(RfqItemModel.id) == 1)
        )
        cost_rows = self.session.execute(
            select(QuoteModel.vendor_id, QuoteModel.landed_cost, RfqItemModel.quantity)
            .join(RfqItemModel, RfqItemModel.rfq_id == QuoteModel.rfq_id)
            .where(
                QuoteModel.company_id == ctx.company_id,
                QuoteModel.vendor_id.in_(vendor_ids),
                RfqItemModel.item_id.in_(item_ids),
                RfqItemModel.quantity > 0,
                QuoteModel.rfq_id.in_(single_item_rfqs),
            )
        ).all()

        # per-unit division in Decimal, not SQL
        unit_costs: dict[UUID, list[Decimal]] = {}
        for vendor_id, landed_cost, quantity in cost_rows:
            unit_costs.setdefault(vendor_id, []).append(
                _as_decimal(landed_cost) / _as_decimal(quantity)
            )

        result: dict[UUID, VendorPerformance] = {}
        for vendor_id, avg_days in delivery_rows:
            days = _as_decimal(avg_days)
            costs = unit_costs.get(vendor_id)
            result[vendor_id] = VendorPerformance(
                vendor_id=vendor_id,
                avg_unit_cost=round_money(sum(costs) / len(costs)) if costs else None,
                avg_delivery_days=round_score(days) if days is not None else None,
            )
        return result

    def vendor_quote_history(
        self,
        ctx: TenantContext,
        vendor_id: UUID,
        limit: int = 50,
    ) -> list[QuoteHistoryEntry]:
        """The vendor's most recent quotes, newest first."""
        rows = self.session.execute(
            select(QuoteModel.landed_cost, QuoteModel.status, QuoteModel.created_at, RfqModel.created_at)
            .join(RfqModel, RfqModel.id == QuoteModel.rfq_id)
            .where(
                QuoteModel.company_id == ctx.company_id,
                QuoteModel.vendor_id == vendor_id,
            )
            .order_by(QuoteModel.created_at.desc(), QuoteModel.quote_number.desc())
            .limit(limit)
        ).all()

        entries = []
        for landed_cost, status, quoted_at, rfq_created_at in rows:
            seconds = Decimal(str((quoted_at - rfq_created_at).total_seconds()))
            entries.append(
                QuoteHistoryEntry(
                    landed_cost=landed_cost,
                    approved=status == QuoteStatus.APPROVED.value,
                    response_days=max(Decimal("0"), seconds / SECONDS_PER_DAY),
                )
            )
        return entries
