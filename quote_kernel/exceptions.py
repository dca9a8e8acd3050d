"""
Typed Exception Hierarchy for the Quote Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (HTTP controllers, workers, tests) must be able to react to an error
without parsing its message.  Every error raised by the engine therefore:

  1. Has its own class (catch by type, not by message)
  2. Carries a CODE class attribute (machine-readable, API-safe)
  3. Stores its context as attributes (not only inside the message)

Example:
    try:
        service.approve_quote(ctx, quote_id)
    except QuoteAlreadyApprovedError as e:
        return {"error": e.code, "quoteId": str(e.entity_id)}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    QuoteEngineError (base)
    |
    +-- ValidationError
    |   +-- EmptyItemSetError
    |
    +-- NotFoundError
    |   +-- QuoteNotFoundError
    |   +-- AnomalyNotFoundError
    |   +-- RecommendationNotFoundError
    |   +-- VendorNotFoundError
    |   +-- ItemNotFoundError
    |   +-- RfqNotFoundError
    |
    +-- ConflictError
    |   +-- QuoteNumberConflictError
    |
    +-- StateError
    |   +-- QuoteAlreadyApprovedError
    |
    +-- ImmutabilityViolationError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                      | When Raised
-------------|---------------------------|--------------------------------------
Validation   | VALIDATION_ERROR          | Malformed numeric/enum input
             | EMPTY_ITEM_SET            | Recommendation request without items
-------------|---------------------------|--------------------------------------
Not found    | NOT_FOUND                 | Generic missing record
             | QUOTE_NOT_FOUND           | Quote absent for the tenant
             | ANOMALY_NOT_FOUND         | Anomaly absent for the tenant
             | RECOMMENDATION_NOT_FOUND  | Recommendation absent for the tenant
             | VENDOR_NOT_FOUND          | Vendor absent, inactive or tombstoned
             | ITEM_NOT_FOUND            | Item absent or tombstoned
             | RFQ_NOT_FOUND             | RFQ absent for the tenant
-------------|---------------------------|--------------------------------------
Conflict     | CONFLICT                  | Transient contention after retries
             | QUOTE_NUMBER_CONFLICT     | Sequence increment kept failing
-------------|---------------------------|--------------------------------------
State        | INVALID_STATE_TRANSITION  | Lifecycle transition not allowed
             | QUOTE_ALREADY_APPROVED    | approve() on an APPROVED quote
-------------|---------------------------|--------------------------------------
Immutability | IMMUTABILITY_VIOLATION    | Update/delete of an audit record
Config       | CONFIGURATION_ERROR       | Invalid engine configuration

===============================================================================
PROPAGATION
===============================================================================

ValidationError and StateError mean the caller's input must change; they are
never retried.  ConflictError is raised only after the engine has already
retried a bounded number of times; the caller may retry the whole operation.
"""

from __future__ import annotations

from typing import Any


class QuoteEngineError(Exception):
    """
    Base exception for all quote engine errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "QUOTE_ENGINE_ERROR"


# Validation


class ValidationError(QuoteEngineError):
    """Malformed numeric, enum or collection input."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str, value: Any = None):
        self.field = field
        self.reason = reason
        self.value = value
        super().__init__(f"Invalid {field}: {reason}")


class EmptyItemSetError(ValidationError):
    """A recommendation request named no items."""

    code: str = "EMPTY_ITEM_SET"

    def __init__(self):
        super().__init__("item_ids", "at least one item is required")


# Missing records


class NotFoundError(QuoteEngineError):
    """Referenced record does not exist for the acting tenant."""

    code: str = "NOT_FOUND"
    entity_type: str = "record"

    def __init__(self, entity_id: Any):
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class QuoteNotFoundError(NotFoundError):
    code: str = "QUOTE_NOT_FOUND"
    entity_type: str = "Quote"


class AnomalyNotFoundError(NotFoundError):
    code: str = "ANOMALY_NOT_FOUND"
    entity_type: str = "Anomaly"


class RecommendationNotFoundError(NotFoundError):
    code: str = "RECOMMENDATION_NOT_FOUND"
    entity_type: str = "Recommendation"


class VendorNotFoundError(NotFoundError):
    code: str = "VENDOR_NOT_FOUND"
    entity_type: str = "Vendor"


class ItemNotFoundError(NotFoundError):
    code: str = "ITEM_NOT_FOUND"
    entity_type: str = "Item"


class RfqNotFoundError(NotFoundError):
    code: str = "RFQ_NOT_FOUND"
    entity_type: str = "RFQ"


# Contention


class ConflictError(QuoteEngineError):
    """A write could not be committed after bounded retries."""

    code: str = "CONFLICT"

    def __init__(self, resource: str, attempts: int, reason: str | None = None):
        self.resource = resource
        self.attempts = attempts
        self.reason = reason
        message = f"Could not commit {resource} after {attempts} attempt(s)"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class QuoteNumberConflictError(ConflictError):
    """The per-company quote sequence could not be incremented."""

    code: str = "QUOTE_NUMBER_CONFLICT"

    def __init__(self, company_id: Any, attempts: int, reason: str | None = None):
        self.company_id = company_id
        super().__init__(f"quote number for company {company_id}", attempts, reason)


# Lifecycle


class StateError(QuoteEngineError):
    """Lifecycle transition not permitted from the current state."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: Any,
        current_state: str,
        attempted: str,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_state = current_state
        self.attempted = attempted
        super().__init__(
            f"Cannot {attempted} {entity_type} {entity_id} in state {current_state}"
        )


class QuoteAlreadyApprovedError(StateError):
    """approve() was called on a quote that is already APPROVED."""

    code: str = "QUOTE_ALREADY_APPROVED"

    def __init__(self, quote_id: Any):
        super().__init__("Quote", quote_id, "APPROVED", "approve")


# Immutability


class ImmutabilityViolationError(QuoteEngineError):
    """Attempted to modify or delete an audit record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Configuration


class ConfigurationError(QuoteEngineError):
    """Engine configuration is structurally invalid."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid configuration at {path}: {reason}")
