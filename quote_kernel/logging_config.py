"""
Structured JSON logging for the quote engine.

Every record is one JSON object per line with a fixed envelope (``ts``,
``level``, ``logger``, ``message``), the request-scoped fields held in
LogContext, and whatever the caller passed as ``extra``.  Engine exceptions
logged with ``exc_info`` contribute their ``code`` and structured attributes
as ``exc_*`` keys, so a failed operation can be found by error code without
parsing tracebacks.

Request-scoped fields:
    correlation_id  one id per facade operation
    company_id      tenant the operation runs for
    actor_id        user on whose behalf it runs
    operation       facade method name
    request_id      caller-supplied id, when there is one
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any
from uuid import UUID

LOGGER_NAMESPACE = "quote_kernel"

CONTEXT_FIELDS = (
    "correlation_id",
    "company_id",
    "actor_id",
    "operation",
    "request_id",
)

_EMPTY: Mapping[str, str] = MappingProxyType({})

_context: ContextVar[Mapping[str, str]] = ContextVar("quote_log_context", default=_EMPTY)


class LogContext:
    """
    Request-scoped log fields, isolated per thread and per asyncio task.

    The fields live in a single ContextVar holding a read-only mapping, so a
    worker thread starts with an empty context and never sees its caller's.
    """

    @staticmethod
    def _merged(fields: Mapping[str, Any]) -> Mapping[str, str]:
        unknown = set(fields) - set(CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"unknown log context fields: {sorted(unknown)}")
        current = dict(_context.get())
        current.update({k: str(v) for k, v in fields.items() if v is not None})
        return MappingProxyType(current)

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Set context fields.  None values leave the current value in place."""
        _context.set(cls._merged(fields))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get())

    @classmethod
    def clear(cls) -> None:
        _context.set(_EMPTY)

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[type["LogContext"]]:
        """Set fields for the duration of a block, restoring the previous ones."""
        token = _context.set(cls._merged(fields))
        try:
            yield cls
        finally:
            _context.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_RESERVED_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _encode(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if not name.startswith("_") and name != "code":
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for name, value in vars(record).items():
            if name not in _RESERVED_ATTRS:
                payload.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_encode)


# ---------------------------------------------------------------------------
# Logger factory and setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger under the quote_kernel namespace, e.g. ``services.retry``."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the quote_kernel logger.

    Only the first call has an effect until reset_logging().  Records do not
    propagate to the root logger, so host applications keep their own
    formatting for everything else.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    namespace = logging.getLogger(LOGGER_NAMESPACE)
    namespace.setLevel(level)
    namespace.propagate = False

    target = handler or logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    namespace.addHandler(target)


def reset_logging() -> None:
    """Undo configure_logging().  Test use only."""
    global _configured
    with _lock:
        _configured = False
    namespace = logging.getLogger(LOGGER_NAMESPACE)
    namespace.handlers.clear()
    namespace.setLevel(logging.WARNING)
