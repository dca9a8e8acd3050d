"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Quotes, anomalies, recommendations and audit events are audit records: the
procurement team must be able to show which price was submitted, what the
engine concluded about it, and who approved it.  Services only ever make the
few lifecycle mutations the domain allows; these listeners catch everything
else that goes through SQLAlchemy before any SQL reaches the database.

    session.flush()
         |
         v
    [before_update] --> _check_*_update() --> ImmutabilityViolationError
         |
    [before_delete] --> _reject_delete() ---> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                  | Mutable columns                               | Delete
------------------------|-----------------------------------------------|-------
QuoteModel              | status, is_approved, approved_at,             | never
                        | approved_by_id (SUBMITTED -> APPROVED only)   |
AnomalyModel            | acknowledged (false -> true only),            | never
                        | acknowledged_at, acknowledged_by_id           |
RecommendationModel     | was_selected, selected_at, selected_by_id     | never
RecommendationRequest   | none                                          | never
PriceHistoryModel       | none                                          | never
AuditEventModel         | none                                          | never

Usage:
    from quote_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called by init_engine_from_url()
"""

from sqlalchemy import event, inspect

from quote_kernel.exceptions import ImmutabilityViolationError
from quote_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

QUOTE_MUTABLE_COLUMNS = frozenset({"status", "is_approved", "approved_at", "approved_by_id"})
ANOMALY_MUTABLE_COLUMNS = frozenset({"acknowledged", "acknowledged_at", "acknowledged_by_id"})
RECOMMENDATION_MUTABLE_COLUMNS = frozenset({"was_selected", "selected_at", "selected_by_id"})


def _changed_columns(target) -> set[str]:
    """Names of column attributes with pending changes on ``target``."""
    state = inspect(target)
    return {
        attr.key
        for attr in state.mapper.column_attrs
        if state.attrs[attr.key].history.has_changes()
    }


def _previous_value(target, key: str):
    history = inspect(target).attrs[key].history
    return history.deleted[0] if history.deleted else None


def _check_allowed_columns(target, allowed: frozenset[str]) -> None:
    forbidden = _changed_columns(target) - allowed
    if forbidden:
        logger.error(
            "immutability_violation",
            extra={
                "entity_type": type(target).__name__,
                "entity_id": str(target.id),
                "columns": sorted(forbidden),
            },
        )
        raise ImmutabilityViolationError(
            type(target).__name__,
            str(target.id),
            f"columns {sorted(forbidden)} cannot change after creation",
        )


def _check_quote_update(mapper, connection, target):
    _check_allowed_columns(target, QUOTE_MUTABLE_COLUMNS)
    if _previous_value(target, "status") == "APPROVED":
        raise ImmutabilityViolationError(
            "QuoteModel", str(target.id), "an APPROVED quote cannot change status",
        )


def _check_anomaly_update(mapper, connection, target):
    _check_allowed_columns(target, ANOMALY_MUTABLE_COLUMNS)
    if _previous_value(target, "acknowledged") is True and not target.acknowledged:
        raise ImmutabilityViolationError(
            "AnomalyModel", str(target.id), "acknowledgement cannot be withdrawn",
        )


def _check_recommendation_update(mapper, connection, target):
    _check_allowed_columns(target, RECOMMENDATION_MUTABLE_COLUMNS)


def _check_append_only_update(mapper, connection, target):
    _check_allowed_columns(target, frozenset())


def _reject_delete(mapper, connection, target):
    logger.error(
        "immutability_violation",
        extra={"entity_type": type(target).__name__, "entity_id": str(target.id)},
    )
    raise ImmutabilityViolationError(
        type(target).__name__, str(target.id), "records are never deleted",
    )


def _listener_table():
    from quote_kernel.models.anomaly import AnomalyModel
    from quote_kernel.models.audit_event import AuditEventModel
    from quote_kernel.models.catalog import PriceHistoryModel
    from quote_kernel.models.quote import QuoteModel
    from quote_kernel.models.recommendation import (
        RecommendationModel,
        RecommendationRequestModel,
    )

    return [
        (QuoteModel, "before_update", _check_quote_update),
        (QuoteModel, "before_delete", _reject_delete),
        (AnomalyModel, "before_update", _check_anomaly_update),
        (AnomalyModel, "before_delete", _reject_delete),
        (RecommendationModel, "before_update", _check_recommendation_update),
        (RecommendationModel, "before_delete", _reject_delete),
        (RecommendationRequestModel, "before_update", _check_append_only_update),
        (RecommendationRequestModel, "before_delete", _reject_delete),
        (PriceHistoryModel, "before_update", _check_append_only_update),
        (PriceHistoryModel, "before_delete", _reject_delete),
        (AuditEventModel, "before_update", _check_append_only_update),
        (AuditEventModel, "before_delete", _reject_delete),
    ]


def register_immutability_listeners() -> None:
    """Register all immutability listeners (idempotent)."""
    for model, identifier, fn in _listener_table():
        if not event.contains(model, identifier, fn):
            event.listen(model, identifier, fn)


def unregister_immutability_listeners() -> None:
    """Remove all immutability listeners. FOR TESTING ONLY."""
    for model, identifier, fn in _listener_table():
        if event.contains(model, identifier, fn):
            event.remove(model, identifier, fn)
