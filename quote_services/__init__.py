"""
quote_services -- stateful services over the engines and the kernel.

``QuoteEvaluationService`` is the public facade; the other services are
flush-only building blocks it wires per unit of work.
"""

from quote_services.anomaly_service import (
    BaselineProvider,
    HistoricalBaselineProvider,
    PriceAnomalyService,
)
from quote_services.evaluation_service import QuoteEvaluationService
from quote_services.explanation import ExplanationService, TextGenerator
from quote_services.quote_lifecycle_service import QuoteLifecycleService, QuoteSubmission
from quote_services.recommendation_service import RecommendationService
from quote_services.vendor_scoring_service import VendorScoringService

__all__ = [
    "BaselineProvider",
    "ExplanationService",
    "HistoricalBaselineProvider",
    "PriceAnomalyService",
    "QuoteEvaluationService",
    "QuoteLifecycleService",
    "QuoteSubmission",
    "RecommendationService",
    "TextGenerator",
    "VendorScoringService",
]
