"""
Module: quote_kernel.models.recommendation
Responsibility: ORM models for vendor recommendation requests and their
    ranked results.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - A request is written once with the full ranked batch.
    - Ranks are unique and contiguous (1..N) within a request; a vendor
      appears at most once per request.
    - Only the selection columns of a recommendation change after insert.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quote_kernel.db.base import TenantBase
from quote_kernel.db.types import Score
from quote_kernel.domain.records import Recommendation


class RecommendationRequestModel(TenantBase):
    """A recommendation request: the requested items and the urgency."""

    __tablename__ = "recommendation_requests"

    item_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    urgency: Mapped[str] = mapped_column(String(10), nullable=False)

    recommendations: Mapped[list[RecommendationModel]] = relationship(
        "RecommendationModel",
        back_populates="request",
        lazy="selectin",
        order_by="RecommendationModel.rank",
    )


class RecommendationModel(TenantBase):
    """One ranked vendor within a request."""

    __tablename__ = "vendor_recommendations"

    __table_args__ = (
        UniqueConstraint("request_id", "rank", name="uq_recommendation_rank"),
        UniqueConstraint("request_id", "vendor_id", name="uq_recommendation_vendor"),
    )

    request_id: Mapped[UUID] = mapped_column(
        ForeignKey("recommendation_requests.id"), nullable=False,
    )
    vendor_id: Mapped[UUID] = mapped_column(ForeignKey("vendors.id"), nullable=False)

    relevance_score: Mapped[Score] = mapped_column(nullable=False)
    vendor_score: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    reasons: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    factors: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False, default=dict)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)

    was_selected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    selected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    selected_by_id: Mapped[UUID | None] = mapped_column(nullable=True)

    request: Mapped[RecommendationRequestModel] = relationship(
        "RecommendationRequestModel", back_populates="recommendations",
    )

    def to_dto(self) -> Recommendation:
        # factors are stored as strings in JSON to keep Decimal precision
        return Recommendation(
            id=self.id,
            request_id=self.request_id,
            vendor_id=self.vendor_id,
            relevance_score=self.relevance_score,
            rank=self.rank,
            was_selected=self.was_selected,
            created_at=self.created_at,
            vendor_score=self.vendor_score,
            reasons=tuple(self.reasons or ()),
            factors={k: Decimal(v) for k, v in (self.factors or {}).items()},
        )
