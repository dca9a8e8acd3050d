"""Read-only selectors returning frozen DTOs."""

from quote_kernel.selectors.anomaly_selector import AnomalySelector
from quote_kernel.selectors.catalog_selector import (
    CatalogSelector,
    ItemInfo,
    RfqInfo,
    RfqLine,
    VendorInfo,
)
from quote_kernel.selectors.history_selector import (
    HistorySelector,
    QuoteHistoryEntry,
    VendorPerformance,
)
from quote_kernel.selectors.quote_selector import QuoteSelector
from quote_kernel.selectors.recommendation_selector import RecommendationSelector

__all__ = [
    "AnomalySelector",
    "CatalogSelector",
    "HistorySelector",
    "ItemInfo",
    "QuoteHistoryEntry",
    "QuoteSelector",
    "RecommendationSelector",
    "RfqInfo",
    "RfqLine",
    "VendorInfo",
    "VendorPerformance",
]
