"""
Records -- frozen DTOs returned by every engine operation.

The engine never hands ORM instances to its callers.  Each record mirrors one
persisted entity; ``to_dict()`` produces the response shape consumed by the
HTTP controllers: camelCase keys, numbers as ``Decimal`` (never strings),
enums as their closed string values, timestamps as ISO-8601.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from quote_kernel.domain.values import AnomalySeverity, QuoteStatus, VendorTier


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _wire(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, tuple):
        return [_wire(v) for v in value]
    if isinstance(value, dict):
        return {k: _wire(v) for k, v in value.items()}
    return value


class _WireRecord:
    """Mixin: camelCase dict rendering of a frozen dataclass."""

    def to_dict(self) -> dict[str, Any]:
        return {_camel(f.name): _wire(getattr(self, f.name)) for f in fields(self)}


@dataclass(frozen=True)
class Quote(_WireRecord):
    """A vendor's priced answer to an RFQ."""

    id: UUID
    quote_number: str
    rfq_id: UUID
    vendor_id: UUID
    base_price: Decimal
    gst_percent: Decimal
    gst_amount: Decimal
    transport_cost: Decimal
    landed_cost: Decimal
    status: QuoteStatus
    is_approved: bool
    created_at: datetime
    delivery_days: int | None = None
    terms: str | None = None
    notes: str | None = None
    approved_at: datetime | None = None


@dataclass(frozen=True)
class Anomaly(_WireRecord):
    """Outcome of comparing one quote/item price against its baseline."""

    id: UUID
    quote_id: UUID
    item_id: UUID
    expected_price: Decimal
    actual_price: Decimal
    deviation: Decimal
    severity: AnomalySeverity
    acknowledged: bool
    created_at: datetime
    ai_explanation: str | None = None
    acknowledged_at: datetime | None = None


@dataclass(frozen=True)
class Recommendation(_WireRecord):
    """One ranked vendor within a recommendation request."""

    id: UUID
    request_id: UUID
    vendor_id: UUID
    relevance_score: Decimal
    rank: int
    was_selected: bool
    created_at: datetime
    vendor_score: Decimal | None = None
    reasons: tuple[str, ...] = ()
    factors: dict[str, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class SubmissionResult(_WireRecord):
    """A persisted quote together with the anomalies evaluated for it."""

    quote: Quote
    anomalies: tuple[Anomaly, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "quote": self.quote.to_dict(),
            "anomalies": [a.to_dict() for a in self.anomalies],
        }


@dataclass(frozen=True)
class VendorScore(_WireRecord):
    """Result of recalculating a vendor's score from its quote history."""

    vendor_id: UUID
    overall_score: Decimal
    tier: VendorTier
    price_score: Decimal
    response_score: Decimal
    consistency_score: Decimal
    data_points: int
    explanation: str
    calculated_at: datetime
