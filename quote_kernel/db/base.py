"""
Declarative base for the quote engine's ORM models.

Column conventions shared by every table:

    id           UUID primary key, generated client-side (uuid4) and stored
                 as String(36) so PostgreSQL and SQLite behave the same
    money/score  Decimal columns map to Numeric(38, 9); services round to
                 2 places (money) or 4 places (scores) before writing
    timestamps   timezone-aware; written from the service Clock

Tenant-owned rows (catalog, quotes, anomalies, recommendations) extend
TenantBase and carry ``company_id`` plus the creating user.  Nothing in this
module imports from models, selectors or services.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """A UUID column stored as its 36-character string form."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)


class TenantBase(Base):
    """
    A row owned by one company.

    ``created_at`` is set by the writing service from its Clock; the server
    default only applies to rows inserted by hand (imports, fixtures).
    Selectors filter every query on ``company_id``.
    """

    __abstract__ = True

    company_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    created_by_id: Mapped[UUID] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)


__all__ = ["Base", "TenantBase", "UUIDString"]
