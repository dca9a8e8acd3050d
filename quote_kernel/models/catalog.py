"""
Module: quote_kernel.models.catalog
Responsibility: ORM models for the catalog the engine consumes but does not
    own: vendors, items, RFQs with their items, and the per-item price history
    that feeds anomaly baselines.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Soft delete is an explicit tombstone (``deleted_at``); rows are never
      removed, and tombstoned vendors/items are invisible to the engine.
    - ``materials_supplied`` holds the categories a vendor can supply; it is
      compared case-insensitively with ``ItemModel.category``.
    - PriceHistoryModel is append-only (see db/immutability.py).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quote_kernel.db.base import TenantBase
from quote_kernel.db.types import Money


def normalize_category(value: str) -> str:
    return " ".join(value.split()).casefold()


class VendorModel(TenantBase):
    """
    A supplier registered by a company.

    ``created_at`` doubles as the registration timestamp used as the last
    deterministic tie-break when ranking vendors.
    """

    __tablename__ = "vendors"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    materials_supplied: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    vendor_score: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    tier: Mapped[str | None] = mapped_column(String(1), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    @property
    def categories(self) -> frozenset[str]:
        return frozenset(
            normalize_category(m) for m in (self.materials_supplied or []) if m and m.strip()
        )

    def __repr__(self) -> str:
        return f"<Vendor {self.name} score={self.vendor_score}>"


class ItemModel(TenantBase):
    """A catalog item that can be requested in an RFQ."""

    __tablename__ = "items"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="EA")
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    @property
    def normalized_category(self) -> str:
        return normalize_category(self.category)


class RfqModel(TenantBase):
    """A request for quotation sent to vendors."""

    __tablename__ = "rfqs"

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="OPEN")

    items: Mapped[list[RfqItemModel]] = relationship(
        "RfqItemModel",
        back_populates="rfq",
        lazy="selectin",
        order_by="RfqItemModel.item_id",
    )


class RfqItemModel(TenantBase):
    """An item line on an RFQ."""

    __tablename__ = "rfq_items"

    __table_args__ = (
        UniqueConstraint("rfq_id", "item_id", name="uq_rfq_item"),
        Index("idx_rfq_items_item", "item_id"),
    )

    rfq_id: Mapped[UUID] = mapped_column(ForeignKey("rfqs.id"), nullable=False)
    item_id: Mapped[UUID] = mapped_column(ForeignKey("items.id"), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("1"))

    rfq: Mapped[RfqModel] = relationship("RfqModel", back_populates="items")


class PriceHistoryModel(TenantBase):
    """
    One observed unit price for an item.

    Rows come from approved quotes (``source="approved_quote"``) or from
    external imports; the baseline provider averages them.
    """

    __tablename__ = "price_history"

    __table_args__ = (
        Index("idx_price_history_item_recorded", "item_id", "recorded_at"),
    )

    item_id: Mapped[UUID] = mapped_column(ForeignKey("items.id"), nullable=False)
    unit_price: Mapped[Money] = mapped_column(nullable=False)
    source: Mapped[str] = mapped_column(String(50), nullable=False, default="import")
    quote_id: Mapped[UUID | None] = mapped_column(nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(nullable=False)
