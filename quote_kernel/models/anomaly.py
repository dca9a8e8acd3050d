"""
Module: quote_kernel.models.anomaly
Responsibility: ORM model for price anomaly evaluations.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - One row per evaluated (quote_id, item_id) pair.
    - Prices, deviation and severity are written once; acknowledgement is the
      only permitted change and it never reverts (db/immutability.py).
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from quote_kernel.db.base import TenantBase
from quote_kernel.db.types import Money
from quote_kernel.domain.records import Anomaly
from quote_kernel.domain.values import AnomalySeverity


class AnomalyModel(TenantBase):
    """Deviation of a quoted price from the item's expected price."""

    __tablename__ = "price_anomalies"

    __table_args__ = (
        UniqueConstraint("quote_id", "item_id", name="uq_anomaly_quote_item"),
        Index("idx_anomalies_company_created", "company_id", "created_at"),
    )

    quote_id: Mapped[UUID] = mapped_column(ForeignKey("quotes.id"), nullable=False)
    item_id: Mapped[UUID] = mapped_column(ForeignKey("items.id"), nullable=False)

    expected_price: Mapped[Money] = mapped_column(nullable=False)
    actual_price: Mapped[Money] = mapped_column(nullable=False)
    deviation: Mapped[Money] = mapped_column(Numeric(38, 9), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)

    ai_explanation: Mapped[str | None] = mapped_column(Text, nullable=True)

    acknowledged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    acknowledged_at: Mapped[datetime | None] = mapped_column(nullable=True)
    acknowledged_by_id: Mapped[UUID | None] = mapped_column(nullable=True)

    def to_dto(self) -> Anomaly:
        return Anomaly(
            id=self.id,
            quote_id=self.quote_id,
            item_id=self.item_id,
            expected_price=self.expected_price,
            actual_price=self.actual_price,
            deviation=self.deviation,
            severity=AnomalySeverity(self.severity),
            acknowledged=self.acknowledged,
            created_at=self.created_at,
            ai_explanation=self.ai_explanation,
            acknowledged_at=self.acknowledged_at,
        )
