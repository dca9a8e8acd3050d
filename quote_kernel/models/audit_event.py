"""
Module: quote_kernel.models.audit_event
Responsibility: ORM persistence for the append-only engine audit trail.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Audit records are append-only; no UPDATE or DELETE (db/immutability.py).
    - Every engine mutation (submission, approval, anomaly detection and
      acknowledgement, recommendation generation and selection, vendor
      scoring) produces exactly one AuditEvent in the same transaction.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from quote_kernel.db.base import Base, UUIDString


class AuditAction(str, Enum):
    """Types of auditable actions."""

    QUOTE_SUBMITTED = "quote_submitted"
    QUOTE_APPROVED = "quote_approved"

    PRICE_ANOMALY_DETECTED = "price_anomaly_detected"
    PRICE_ANOMALY_ACKNOWLEDGED = "price_anomaly_acknowledged"

    VENDOR_RECOMMENDATIONS_GENERATED = "vendor_recommendations_generated"
    VENDOR_RECOMMENDATION_SELECTED = "vendor_recommendation_selected"

    VENDOR_SCORE_CALCULATED = "vendor_score_calculated"


class AuditEventModel(Base):
    """One audited action on one entity."""

    __tablename__ = "audit_events"

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_company_occurred", "company_id", "occurred_at"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # e.g. "Quote", "Anomaly", "RecommendationRequest", "Vendor"
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    action: Mapped[str] = mapped_column(String(50), nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<AuditEvent {self.action} on {self.entity_type}:{self.entity_id}>"
