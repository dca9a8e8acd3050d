"""
Module: quote_kernel.models.quote
Responsibility: ORM model for vendor quotes.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - gst_amount and landed_cost are derived once at submission and never
      change; only the approval columns are mutable (db/immutability.py).
    - is_approved is True exactly when status is APPROVED.
    - quote_number is unique per company.

Failure modes:
    - IntegrityError on a duplicate (company_id, quote_number) pair.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from quote_kernel.db.base import TenantBase
from quote_kernel.db.types import Money
from quote_kernel.domain.records import Quote
from quote_kernel.domain.values import QuoteStatus


class QuoteModel(TenantBase):
    """A vendor's quote against an RFQ."""

    __tablename__ = "quotes"

    __table_args__ = (
        UniqueConstraint("company_id", "quote_number", name="uq_quote_number"),
        Index("idx_quotes_rfq", "rfq_id", "landed_cost"),
        Index("idx_quotes_vendor", "vendor_id"),
    )

    quote_number: Mapped[str] = mapped_column(String(50), nullable=False)
    rfq_id: Mapped[UUID] = mapped_column(ForeignKey("rfqs.id"), nullable=False)
    vendor_id: Mapped[UUID] = mapped_column(ForeignKey("vendors.id"), nullable=False)

    base_price: Mapped[Money] = mapped_column(nullable=False)
    gst_percent: Mapped[Money] = mapped_column(nullable=False)
    gst_amount: Mapped[Money] = mapped_column(nullable=False)
    transport_cost: Mapped[Money] = mapped_column(nullable=False)
    landed_cost: Mapped[Money] = mapped_column(nullable=False)

    delivery_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    terms: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=QuoteStatus.SUBMITTED.value,
    )
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_by_id: Mapped[UUID | None] = mapped_column(nullable=True)

    @property
    def quote_status(self) -> QuoteStatus:
        return QuoteStatus(self.status)

    def to_dto(self) -> Quote:
        return Quote(
            id=self.id,
            quote_number=self.quote_number,
            rfq_id=self.rfq_id,
            vendor_id=self.vendor_id,
            base_price=self.base_price,
            gst_percent=self.gst_percent,
            gst_amount=self.gst_amount,
            transport_cost=self.transport_cost,
            landed_cost=self.landed_cost,
            status=self.quote_status,
            is_approved=self.is_approved,
            created_at=self.created_at,
            delivery_days=self.delivery_days,
            terms=self.terms,
            notes=self.notes,
            approved_at=self.approved_at,
        )

    def __repr__(self) -> str:
        return f"<Quote {self.quote_number} {self.status} landed={self.landed_cost}>"
