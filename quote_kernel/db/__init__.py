"""Database infrastructure for the quote kernel."""

from quote_kernel.db.base import Base, TenantBase, UUIDString
from quote_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "Base",
    "TenantBase",
    "UUIDString",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
]
