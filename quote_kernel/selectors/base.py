"""
Module: quote_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, domain/ and
    models/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors never call session.add(), delete(),
      flush() or commit().
    - DTO return convention: selectors return frozen dataclasses, not ORM
      instances.
    - Tenant scoping: every query filters on the caller's company_id.
    - Session ownership: the caller owns the session and its transaction, so
      several selector calls inside one transaction read one snapshot.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """Abstract base class for all selectors."""

    def __init__(self, session: Session):
        self.session = session
