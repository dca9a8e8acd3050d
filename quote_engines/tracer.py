"""
quote_engines.tracer -- one QUOTE_ENGINE_TRACE record per engine call.

``@traced_engine`` wraps a pure calculation and, when it returns, logs the
engine name and version, how long it took, and a fingerprint of the inputs
that determine its result.  Two calls with the same fingerprint and the same
engine version must produce the same output; that is what lets a stored
anomaly or recommendation batch be matched back to the calculation that
produced it.

Arguments are bound to the wrapped function's signature before
fingerprinting, so positional and keyword calls fingerprint alike.  A call
that raises logs nothing here; the caller logs the failure.

    @traced_engine("landed_cost", "1.0",
                   fingerprint_fields=("base_price", "gst_percent", "transport_cost"))
    def compute(self, base_price, gst_percent, transport_cost=0): ...
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import time
from collections.abc import Callable, Mapping
from decimal import Decimal
from enum import Enum
from typing import Any

from quote_kernel.logging_config import get_logger

logger = get_logger("engines.tracer")


def _canonical(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Decimal):
        # 100 and 100.00 are the same price
        return format(value.normalize(), "f") if value.is_finite() else str(value)
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, Mapping):
        pairs = sorted((str(k), _canonical(v)) for k, v in value.items())
        return "{" + ",".join(f"{k}:{v}" for k, v in pairs) + "}"
    if isinstance(value, (set, frozenset)):
        return "[" + ",".join(sorted(_canonical(v) for v in value)) + "]"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonical(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """First 16 hex chars of SHA-256 over the named arguments; absent ones count as null."""
    canonical = "|".join(
        f"{name}={_canonical(arguments.get(name))}" for name in fingerprint_fields
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            result = func(*args, **kwargs)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 3)

            fingerprint = ""
            if fingerprint_fields:
                bound = signature.bind(*args, **kwargs)
                bound.apply_defaults()
                fingerprint = compute_input_fingerprint(fingerprint_fields, bound.arguments)

            logger.info(
                "QUOTE_ENGINE_TRACE",
                extra={
                    "trace_type": "QUOTE_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fingerprint,
                    "duration_ms": elapsed_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
