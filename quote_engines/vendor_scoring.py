"""
quote_engines.vendor_scoring -- Vendor score from quote history.

Responsibility:
    Turn a vendor's recent quote history into component scores, a 0-100
    overall score and an A/B/C tier.  The stored score is what the
    recommendation ranker uses as its trust factor.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Components (each 0-100):
    price        approved quotes / total quotes * 100 (50 with no quotes)
    response     100 - 15 * average days from RFQ creation to quote
                 (3 days assumed with no quotes), floored at 0
    consistency  100 - coefficient of variation of landed costs (in %),
                 floored at 0

Invariants enforced:
    - overall = weighted average of the components, rounded to 2 places.
    - tier A when overall >= 80, B when >= 60, otherwise C.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from quote_engines.tracer import traced_engine
from quote_kernel.db.types import round_money
from quote_kernel.domain.values import VendorTier

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class ScoringWeights:
    price: Decimal = Decimal("0.5")
    response: Decimal = Decimal("0.25")
    consistency: Decimal = Decimal("0.25")

    def __post_init__(self) -> None:
        total = self.price + self.response + self.consistency
        if min(self.price, self.response, self.consistency) < 0 or total != Decimal("1"):
            raise ValueError("scoring weights must be non-negative and sum to 1")


@dataclass(frozen=True)
class QuoteObservation:
    """One past quote of the vendor."""

    landed_cost: Decimal
    approved: bool
    response_days: Decimal


@dataclass(frozen=True)
class VendorScoreResult:
    overall_score: Decimal
    tier: VendorTier
    price_score: Decimal
    response_score: Decimal
    consistency_score: Decimal
    data_points: int
    explanation: str


class VendorScoringEngine:
    """Computes vendor scores; history is newest first and already bounded."""

    DEFAULT_RESPONSE_DAYS = Decimal("3")
    POINTS_PER_RESPONSE_DAY = Decimal("15")

    def __init__(self, weights: ScoringWeights | None = None):
        self.weights = weights or ScoringWeights()

    @staticmethod
    def tier_for(score: Decimal) -> VendorTier:
        if score >= 80:
            return VendorTier.A
        if score >= 60:
            return VendorTier.B
        return VendorTier.C

    def _consistency(self, prices: Sequence[Decimal]) -> Decimal:
        if not prices:
            return HUNDRED
        mean = sum(prices, ZERO) / len(prices)
        if mean <= 0 or len(prices) < 2:
            return HUNDRED
        variance = sum(((p - mean) ** 2 for p in prices), ZERO) / len(prices)
        cv_percent = variance.sqrt() / mean * HUNDRED
        return max(ZERO, HUNDRED - cv_percent)

    @traced_engine("vendor_scoring", "1.0")
    def score(self, history: Sequence[QuoteObservation]) -> VendorScoreResult:
        total = len(history)
        if total:
            approved = sum(1 for q in history if q.approved)
            price_score = Decimal(approved) / Decimal(total) * HUNDRED
            avg_days = sum((q.response_days for q in history), ZERO) / total
        else:
            price_score = Decimal("50")
            avg_days = self.DEFAULT_RESPONSE_DAYS

        response_score = max(ZERO, HUNDRED - avg_days * self.POINTS_PER_RESPONSE_DAY)
        consistency_score = self._consistency([q.landed_cost for q in history])

        overall = round_money(
            price_score * self.weights.price
            + response_score * self.weights.response
            + consistency_score * self.weights.consistency
        )
        overall = min(HUNDRED, max(ZERO, overall))

        parts = [f"Score based on {total} quotes."]
        if total < 3:
            parts.append("Limited data available; score may not be fully representative.")
        if price_score >= 80:
            parts.append("Highly competitive pricing.")
        elif price_score < 50:
            parts.append("Quotes often not selected; may need price review.")

        return VendorScoreResult(
            overall_score=overall,
            tier=self.tier_for(overall),
            price_score=round_money(price_score),
            response_score=round_money(response_score),
            consistency_score=round_money(consistency_score),
            data_points=total,
            explanation=" ".join(parts),
        )
