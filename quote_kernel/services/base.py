"""
BaseService -- common constructor for kernel services.

Responsibility:
    Every write service receives the caller's Session, the acting clock and
    an AuditorService, and uses ``session.flush()``; never ``commit()``.
    The facade in quote_services owns transaction boundaries so a
    multi-step operation (number allocation, quote insert, audit event)
    commits or rolls back as one unit.
"""

from abc import ABC

from sqlalchemy.orm import Session

from quote_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for kernel write services.

    Non-goals:
        - Does NOT manage commit/rollback.
        - Does NOT provide read-only queries; those live in selectors/.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
