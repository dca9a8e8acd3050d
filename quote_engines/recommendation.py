"""
quote_engines.recommendation -- Vendor recommendation ranking.

Responsibility:
    Score candidate vendors for a set of requested item categories and an
    urgency level, explain each score with human-readable reasons, and
    produce a deterministic 1-based ranking.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The services layer reads
    the vendor/quote history snapshot and hands it in as VendorCandidate
    values.

Factors (each in [0, 1]):
    coverage  -- |vendor categories & requested| / |requested|
    price     -- min-max inverse of historical average landed cost among
                 candidates with history (cheapest = 1, all equal = 1);
                 candidates without history get the neutral value
    delivery  -- same normalization over historical average delivery days
    trust     -- vendor_score / 100, or the neutral value when unscored

    relevance = sum(weight[f] * factor[f]) clamped to [0, 1], 4 places.

Invariants enforced:
    - Ranks are exactly 1..N with relevance non-increasing.
    - Ties: vendor score descending (unscored last), then earliest
      registration, then vendor id.  Identical inputs give identical output.
    - Candidates covering none of the requested categories are excluded.
    - Truncation to max_results happens after ranking, so ranks stay
      contiguous.

Failure modes:
    - EmptyItemSetError if no categories are requested.
    - ValueError from FactorWeights on negative weights or a sum other than 1.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from quote_engines.tracer import traced_engine
from quote_kernel.db.types import round_score
from quote_kernel.domain.values import Urgency
from quote_kernel.exceptions import EmptyItemSetError
from quote_kernel.logging_config import get_logger

logger = get_logger("engines.recommendation")

ZERO = Decimal("0")
ONE = Decimal("1")
NEUTRAL = Decimal("0.5")

FACTOR_NAMES = ("coverage", "price", "delivery", "trust")


@dataclass(frozen=True)
class FactorWeights:
    """Relative weight of each factor.  Must sum to 1."""

    coverage: Decimal
    price: Decimal
    delivery: Decimal
    trust: Decimal

    def __post_init__(self) -> None:
        values = [self.coverage, self.price, self.delivery, self.trust]
        if any(v < 0 for v in values):
            raise ValueError("factor weights must not be negative")
        if sum(values, ZERO) != ONE:
            raise ValueError(f"factor weights must sum to 1, got {sum(values, ZERO)}")

    def get(self, factor: str) -> Decimal:
        return getattr(self, factor)


DEFAULT_URGENCY_WEIGHTS: Mapping[Urgency, FactorWeights] = {
    Urgency.LOW: FactorWeights(
        coverage=Decimal("0.35"), price=Decimal("0.35"),
        delivery=Decimal("0.10"), trust=Decimal("0.20"),
    ),
    Urgency.MEDIUM: FactorWeights(
        coverage=Decimal("0.30"), price=Decimal("0.30"),
        delivery=Decimal("0.20"), trust=Decimal("0.20"),
    ),
    Urgency.HIGH: FactorWeights(
        coverage=Decimal("0.25"), price=Decimal("0.20"),
        delivery=Decimal("0.40"), trust=Decimal("0.15"),
    ),
}


@dataclass(frozen=True)
class ReasonThresholds:
    """Minimum factor value for each reason to be reported."""

    coverage: Decimal = Decimal("0.5")
    price: Decimal = Decimal("0.8")
    delivery: Decimal = Decimal("0.7")
    trust: Decimal = Decimal("0.8")

    def get(self, factor: str) -> Decimal:
        return getattr(self, factor)


@dataclass(frozen=True)
class RecommendationPolicy:
    """Weights per urgency, reason thresholds and result size."""

    weights: Mapping[Urgency, FactorWeights] = field(
        default_factory=lambda: dict(DEFAULT_URGENCY_WEIGHTS),
    )
    reasons: ReasonThresholds = field(default_factory=ReasonThresholds)
    max_results: int = 10
    neutral_factor: Decimal = NEUTRAL

    def __post_init__(self) -> None:
        missing = [u.value for u in Urgency if u not in self.weights]
        if missing:
            raise ValueError(f"no factor weights for urgency {missing}")
        if self.max_results < 1:
            raise ValueError("max_results must be at least 1")

    def weights_for(self, urgency: Urgency) -> FactorWeights:
        return self.weights[urgency]


@dataclass(frozen=True)
class VendorCandidate:
    """Snapshot of one vendor as seen by the ranker."""

    vendor_id: UUID
    categories: frozenset[str]
    registered_at: datetime
    vendor_score: Decimal | None = None
    avg_landed_cost: Decimal | None = None  # per unit
    avg_delivery_days: Decimal | None = None


@dataclass(frozen=True)
class ScoredVendor:
    """One ranked vendor."""

    vendor_id: UUID
    rank: int
    relevance_score: Decimal
    vendor_score: Decimal | None
    reasons: tuple[str, ...]
    factors: dict[str, Decimal]


def _inverse_min_max(values: Mapping[UUID, Decimal]) -> dict[UUID, Decimal]:
    if not values:
        return {}
    low = min(values.values())
    high = max(values.values())
    if high == low:
        return {vid: ONE for vid in values}
    span = high - low
    return {vid: (high - v) / span for vid, v in values.items()}


class VendorRecommendationRanker:
    """Deterministic vendor ranking for a procurement need."""

    def __init__(self, policy: RecommendationPolicy | None = None):
        self.policy = policy or RecommendationPolicy()

    def _reasons(
        self,
        factors: Mapping[str, Decimal],
        weights: FactorWeights,
        matched: int,
        requested: int,
    ) -> tuple[str, ...]:
        messages = {
            "coverage": f"Matches {matched}/{requested} requested categories",
            "price": "Competitive pricing history",
            "delivery": "Fast delivery history",
            "trust": "Top-rated vendor",
        }
        earned = [
            name for name in FACTOR_NAMES
            if factors[name] >= self.policy.reasons.get(name)
        ]
        # stable sort keeps FACTOR_NAMES order for equal contributions
        earned.sort(key=lambda name: weights.get(name) * factors[name], reverse=True)
        return tuple(messages[name] for name in earned)

    @traced_engine(
        "vendor_recommendation", "1.0",
        fingerprint_fields=("requested_categories", "urgency"),
    )
    def rank(
        self,
        requested_categories: frozenset[str],
        urgency: Urgency,
        candidates: Sequence[VendorCandidate],
    ) -> list[ScoredVendor]:
        """
        Score and order candidates.

        Args:
            requested_categories: Normalized categories of the requested items.
            urgency: Selects the factor weight row.
            candidates: Vendor snapshot; order does not affect the result.

        Returns:
            At most ``policy.max_results`` vendors, ranked 1..N.
        """
        if not requested_categories:
            raise EmptyItemSetError()

        weights = self.policy.weights_for(urgency)
        neutral = self.policy.neutral_factor
        requested = len(requested_categories)

        eligible = [
            c for c in candidates if c.categories & requested_categories
        ]

        price_factor = _inverse_min_max({
            c.vendor_id: c.avg_landed_cost
            for c in eligible if c.avg_landed_cost is not None
        })
        delivery_factor = _inverse_min_max({
            c.vendor_id: c.avg_delivery_days
            for c in eligible if c.avg_delivery_days is not None
        })

        scored: list[tuple[tuple, VendorCandidate, Decimal, tuple[str, ...], dict]] = []
        for candidate in eligible:
            matched = len(candidate.categories & requested_categories)
            if candidate.vendor_score is None:
                trust = neutral
            else:
                trust = min(ONE, max(ZERO, candidate.vendor_score / Decimal("100")))

            factors = {
                "coverage": Decimal(matched) / Decimal(requested),
                "price": price_factor.get(candidate.vendor_id, neutral),
                "delivery": delivery_factor.get(candidate.vendor_id, neutral),
                "trust": trust,
            }
            total = sum((weights.get(name) * factors[name] for name in FACTOR_NAMES), ZERO)
            relevance = round_score(min(ONE, max(ZERO, total)))
            reasons = self._reasons(factors, weights, matched, requested)

            sort_key = (
                -relevance,
                candidate.vendor_score is None,
                -(candidate.vendor_score or ZERO),
                candidate.registered_at,
                str(candidate.vendor_id),
            )
            scored.append((sort_key, candidate, relevance, reasons, factors))

        scored.sort(key=lambda entry: entry[0])

        results = [
            ScoredVendor(
                vendor_id=candidate.vendor_id,
                rank=position,
                relevance_score=relevance,
                vendor_score=candidate.vendor_score,
                reasons=reasons,
                factors={name: round_score(value) for name, value in factors.items()},
            )
            for position, (_, candidate, relevance, reasons, factors)
            in enumerate(scored[: self.policy.max_results], start=1)
        ]

        logger.debug(
            "vendors_ranked",
            extra={
                "urgency": urgency.value,
                "candidate_count": len(candidates),
                "eligible_count": len(eligible),
                "returned_count": len(results),
            },
        )
        return results
