"""ORM models for the quote evaluation engine."""

from quote_kernel.models.anomaly import AnomalyModel
from quote_kernel.models.audit_event import AuditAction, AuditEventModel
from quote_kernel.models.catalog import (
    ItemModel,
    PriceHistoryModel,
    RfqItemModel,
    RfqModel,
    VendorModel,
    normalize_category,
)
from quote_kernel.models.quote import QuoteModel
from quote_kernel.models.recommendation import (
    RecommendationModel,
    RecommendationRequestModel,
)


def import_all_models() -> None:
    """Import every mapped module so Base.metadata knows all tables."""
    import quote_kernel.services.quote_number_service  # noqa: F401  (counter table)


__all__ = [
    "AnomalyModel",
    "AuditAction",
    "AuditEventModel",
    "ItemModel",
    "PriceHistoryModel",
    "QuoteModel",
    "RecommendationModel",
    "RecommendationRequestModel",
    "RfqItemModel",
    "RfqModel",
    "VendorModel",
    "import_all_models",
    "normalize_category",
]
