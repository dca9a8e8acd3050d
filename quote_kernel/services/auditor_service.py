"""
AuditorService -- append-only audit trail of engine mutations.

Responsibility:
    Write one AuditEvent per mutation, in the caller's transaction, and
    read back the trail of an entity for review.

Architecture position:
    Kernel > Services -- called by the lifecycle, anomaly, recommendation
    and vendor scoring services.

Invariants enforced:
    - Audit events are never modified or deleted (db/immutability.py).
    - Event timestamps come from the injected clock.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from quote_kernel.domain.clock import Clock
from quote_kernel.domain.tenant import TenantContext
from quote_kernel.logging_config import get_logger
from quote_kernel.models.audit_event import AuditAction, AuditEventModel
from quote_kernel.services.base import BaseService

logger = get_logger("services.auditor")


@dataclass(frozen=True)
class AuditTrailEntry:
    """A single entry in an entity's audit trail."""

    action: AuditAction
    occurred_at: datetime
    actor_id: UUID
    payload: dict[str, Any]


class AuditorService(BaseService):
    """Records and reads audit events."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def record(
        self,
        ctx: TenantContext,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        payload: dict[str, Any] | None = None,
    ) -> AuditEventModel:
        event = AuditEventModel(
            company_id=ctx.company_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action.value,
            actor_id=ctx.user_id,
            occurred_at=self.clock.now(),
            payload=payload or {},
        )
        self.session.add(event)
        self.session.flush()

        logger.debug(
            "audit_event_recorded",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action.value,
            },
        )
        return event

    def get_trail(
        self,
        ctx: TenantContext,
        entity_type: str,
        entity_id: UUID,
    ) -> tuple[AuditTrailEntry, ...]:
        """All events of one entity, oldest first."""
        rows = self.session.execute(
            select(AuditEventModel)
            .where(
                AuditEventModel.company_id == ctx.company_id,
                AuditEventModel.entity_type == entity_type,
                AuditEventModel.entity_id == entity_id,
            )
            .order_by(AuditEventModel.occurred_at, AuditEventModel.id)
        ).scalars().all()

        return tuple(
            AuditTrailEntry(
                action=AuditAction(row.action),
                occurred_at=row.occurred_at,
                actor_id=row.actor_id,
                payload=row.payload or {},
            )
            for row in rows
        )
