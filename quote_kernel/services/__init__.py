"""Kernel infrastructure services: quote numbering, audit trail, retry."""

from quote_kernel.services.auditor_service import AuditorService, AuditTrailEntry
from quote_kernel.services.base import BaseService
from quote_kernel.services.quote_number_service import (
    QuoteNumberService,
    QuoteSequenceCounter,
)
from quote_kernel.services.retry import backoff_delay, run_with_retry

__all__ = [
    "AuditTrailEntry",
    "AuditorService",
    "BaseService",
    "QuoteNumberService",
    "QuoteSequenceCounter",
    "backoff_delay",
    "run_with_retry",
]
