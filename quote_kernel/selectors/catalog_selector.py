"""
CatalogSelector -- tenant-scoped lookups of vendors, items and RFQs.

Tombstoned vendors and items (``deleted_at`` set) are treated as absent.
Inactive vendors are absent for any operation that would attach new work to
them.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from quote_kernel.domain.tenant import TenantContext
from quote_kernel.exceptions import ItemNotFoundError, RfqNotFoundError, VendorNotFoundError
from quote_kernel.models.catalog import ItemModel, RfqItemModel, RfqModel, VendorModel
from quote_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class VendorInfo:
    id: UUID
    name: str
    categories: frozenset[str]
    vendor_score: Decimal | None
    tier: str | None
    registered_at: datetime


@dataclass(frozen=True)
class ItemInfo:
    id: UUID
    name: str
    category: str


@dataclass(frozen=True)
class RfqLine:
    item_id: UUID
    quantity: Decimal


@dataclass(frozen=True)
class RfqInfo:
    id: UUID
    title: str
    created_at: datetime
    lines: tuple[RfqLine, ...]

    @property
    def single_line(self) -> RfqLine | None:
        """The only line of a single-item RFQ, else None."""
        return self.lines[0] if len(self.lines) == 1 else None


def _vendor_info(row: VendorModel) -> VendorInfo:
    return VendorInfo(
        id=row.id,
        name=row.name,
        categories=row.categories,
        vendor_score=row.vendor_score,
        tier=row.tier,
        registered_at=row.created_at,
    )


class CatalogSelector(BaseSelector):
    """Vendor, item and RFQ lookups."""

    def get_active_vendor(self, ctx: TenantContext, vendor_id: UUID) -> VendorInfo:
        row = self.session.execute(
            select(VendorModel).where(
                VendorModel.id == vendor_id,
                VendorModel.company_id == ctx.company_id,
                VendorModel.is_active.is_(True),
                VendorModel.deleted_at.is_(None),
            )
        ).scalar_one_or_none()
        if row is None:
            raise VendorNotFoundError(vendor_id)
        return _vendor_info(row)

    def active_vendors(self, ctx: TenantContext) -> list[VendorInfo]:
        rows = self.session.execute(
            select(VendorModel)
            .where(
                VendorModel.company_id == ctx.company_id,
                VendorModel.is_active.is_(True),
                VendorModel.deleted_at.is_(None),
            )
            .order_by(VendorModel.created_at, VendorModel.id)
        ).scalars().all()
        return [_vendor_info(row) for row in rows]

    def get_items(self, ctx: TenantContext, item_ids: list[UUID]) -> list[ItemInfo]:
        """
        Items in the order requested, duplicates removed.

        Raises:
            ItemNotFoundError: for the first id that is absent or tombstoned.
        """
        unique_ids = list(dict.fromkeys(item_ids))
        rows = self.session.execute(
            select(ItemModel).where(
                ItemModel.id.in_(unique_ids),
                ItemModel.company_id == ctx.company_id,
                ItemModel.deleted_at.is_(None),
            )
        ).scalars().all()
        by_id = {row.id: row for row in rows}
        for item_id in unique_ids:
            if item_id not in by_id:
                raise ItemNotFoundError(item_id)
        return [
            ItemInfo(id=r.id, name=r.name, category=r.normalized_category)
            for r in (by_id[i] for i in unique_ids)
        ]

    def get_rfq(self, ctx: TenantContext, rfq_id: UUID) -> RfqInfo:
        rfq = self.session.execute(
            select(RfqModel).where(
                RfqModel.id == rfq_id,
                RfqModel.company_id == ctx.company_id,
            )
        ).scalar_one_or_none()
        if rfq is None:
            raise RfqNotFoundError(rfq_id)

        lines = self.session.execute(
            select(RfqItemModel.item_id, RfqItemModel.quantity)
            .where(RfqItemModel.rfq_id == rfq_id)
            .order_by(RfqItemModel.item_id)
        ).all()
        return RfqInfo(
            id=rfq.id,
            title=rfq.title,
            created_at=rfq.created_at,
            lines=tuple(RfqLine(item_id=i, quantity=q) for i, q in lines),
        )
