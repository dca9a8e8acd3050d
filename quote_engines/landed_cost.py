"""
quote_engines.landed_cost -- Landed cost of a vendor quote.

Responsibility:
    Derive the GST amount and the landed cost (base + GST + transport) of a
    quote, and provide the ordering used to compare quotes of one RFQ.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - gst_amount = round(base_price * gst_percent / 100).
    - landed_cost = base_price + gst_amount + transport_cost, exactly: base
      price and transport are normalized to the currency's minor unit before
      summing so the identity survives rounding.
    - Money is Decimal rounded with ROUND_HALF_EVEN; floats never enter.
    - Identical inputs produce identical outputs.

Failure modes:
    - ValidationError if base_price <= 0, gst_percent outside [0, 100],
      transport_cost < 0, or any value is non-numeric or non-finite.

Usage:
    calculator = LandedCostCalculator()
    result = calculator.compute(
        base_price=Decimal("50000"), gst_percent=Decimal("18"),
        transport_cost=Decimal("2000"),
    )
    result.gst_amount   # Decimal("9000.00")
    result.landed_cost  # Decimal("61000.00")
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol, TypeVar

from quote_engines.tracer import traced_engine
from quote_kernel.db.types import round_money, to_decimal
from quote_kernel.exceptions import ValidationError
from quote_kernel.logging_config import get_logger

logger = get_logger("engines.landed_cost")

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class LandedCost:
    """Derived pricing of one quote.  All amounts at 2 decimal places."""

    base_price: Decimal
    gst_percent: Decimal
    gst_amount: Decimal
    transport_cost: Decimal
    landed_cost: Decimal


class ComparableQuote(Protocol):
    landed_cost: Decimal
    created_at: datetime
    quote_number: str


Q = TypeVar("Q", bound=ComparableQuote)


class LandedCostCalculator:
    """Stateless landed cost calculator."""

    @traced_engine(
        "landed_cost", "1.0",
        fingerprint_fields=("base_price", "gst_percent", "transport_cost"),
    )
    def compute(
        self,
        base_price: Any,
        gst_percent: Any,
        transport_cost: Any = Decimal("0"),
    ) -> LandedCost:
        """
        Compute GST and landed cost.

        Args:
            base_price: Quoted price before tax (> 0).
            gst_percent: GST rate as a percentage, 0 to 100.
            transport_cost: Freight charged on top (>= 0, default 0).

        Returns:
            LandedCost with every money field rounded to 2 places.
        """
        base = to_decimal(base_price, "base_price")
        rate = to_decimal(gst_percent, "gst_percent")
        transport = to_decimal(
            Decimal("0") if transport_cost is None else transport_cost,
            "transport_cost",
        )

        if base <= 0:
            raise ValidationError("base_price", "must be greater than 0", base_price)
        if rate < 0:
            raise ValidationError("gst_percent", "must not be negative", gst_percent)
        if rate > HUNDRED:
            raise ValidationError("gst_percent", "must not exceed 100", gst_percent)
        if transport < 0:
            raise ValidationError("transport_cost", "must not be negative", transport_cost)

        base = round_money(base)
        transport = round_money(transport)
        gst_amount = round_money(base * rate / HUNDRED)
        landed = base + gst_amount + transport

        return LandedCost(
            base_price=base,
            gst_percent=rate,
            gst_amount=gst_amount,
            transport_cost=transport,
            landed_cost=landed,
        )


def comparison_key(quote: ComparableQuote) -> tuple:
    """Sort key: cheapest landed cost first, then earliest, then by number."""
    return (quote.landed_cost, quote.created_at, quote.quote_number)


def order_for_comparison(quotes: Iterable[Q]) -> list[Q]:
    """Quotes of one RFQ in comparison order."""
    return sorted(quotes, key=comparison_key)
