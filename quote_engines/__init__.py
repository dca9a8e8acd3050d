"""
Module: quote_engines
Responsibility:
    Re-exports the pure calculation engines: landed cost, price anomaly
    classification, vendor recommendation ranking and vendor scoring.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  May import
    quote_kernel.domain, quote_kernel.db.types and quote_kernel.exceptions.
    MUST NOT import quote_services or touch a session.

Invariants enforced:
    - Engines never read the clock; timestamps are passed in.
    - Decimal-only arithmetic.
    - Every public engine call is traced via ``@traced_engine``.
"""

from quote_engines.anomaly import (
    AnomalyAssessment,
    AnomalyThresholds,
    PriceAnomalyDetector,
)
from quote_engines.landed_cost import (
    LandedCost,
    LandedCostCalculator,
    comparison_key,
    order_for_comparison,
)
from quote_engines.recommendation import (
    DEFAULT_URGENCY_WEIGHTS,
    FactorWeights,
    ReasonThresholds,
    RecommendationPolicy,
    ScoredVendor,
    VendorCandidate,
    VendorRecommendationRanker,
)
from quote_engines.vendor_scoring import (
    QuoteObservation,
    ScoringWeights,
    VendorScoreResult,
    VendorScoringEngine,
)

__all__ = [
    "AnomalyAssessment",
    "AnomalyThresholds",
    "DEFAULT_URGENCY_WEIGHTS",
    "FactorWeights",
    "LandedCost",
    "LandedCostCalculator",
    "PriceAnomalyDetector",
    "QuoteObservation",
    "ReasonThresholds",
    "RecommendationPolicy",
    "ScoredVendor",
    "ScoringWeights",
    "VendorCandidate",
    "VendorRecommendationRanker",
    "VendorScoreResult",
    "VendorScoringEngine",
    "comparison_key",
    "order_for_comparison",
]
