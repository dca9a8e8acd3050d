"""
Quote Kernel

The persistence-facing core of the quote evaluation engine:
- Typed exceptions with machine-readable codes
- Structured JSON logging
- Tenant-scoped ORM models for quotes, anomalies and recommendations
- Flush-only services and read-only selectors
"""

__version__ = "0.1.0"
