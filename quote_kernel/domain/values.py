"""
Values -- closed enumerations shared by the kernel, engines and services.

Every enumeration is a ``str`` Enum whose value is the wire representation,
so DTOs serialize them without translation tables.
"""

from __future__ import annotations

from enum import Enum
from typing import Any
from uuid import UUID

from quote_kernel.exceptions import ValidationError


class QuoteStatus(str, Enum):
    """Quote lifecycle states."""

    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"


class AnomalySeverity(str, Enum):
    """Overpricing risk of a quote relative to its baseline."""

    NORMAL = "NORMAL"
    HIGH = "HIGH"
    EXTREMELY_HIGH = "EXTREMELY_HIGH"


class Urgency(str, Enum):
    """Delivery-time sensitivity of a recommendation request."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value: Any) -> Urgency:
        """Accept an Urgency or its (case-insensitive) string value."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise ValidationError(
            "urgency",
            f"must be one of {[u.value for u in cls]}",
            value,
        )


class VendorTier(str, Enum):
    """Vendor score band."""

    A = "A"
    B = "B"
    C = "C"


def parse_uuid(value: Any, field: str) -> UUID:
    """Accept a UUID or its string form."""
    if isinstance(value, UUID):
        return value
    if isinstance(value, str):
        try:
            return UUID(value)
        except ValueError:
            pass
    raise ValidationError(field, "must be a UUID", value)
