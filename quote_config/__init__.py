"""
quote_config -- single public entrypoint for engine configuration.

Responsibility:
    ``get_active_config()`` is the only way the services obtain
    configuration.  It reads the YAML file named by the
    ``QUOTE_ENGINE_CONFIG`` environment variable (or an explicit path), and
    falls back to the built-in defaults when neither is given.

Architecture position:
    Configuration -- sits above quote_kernel and quote_engines, below
    quote_services.  The kernel never imports from this package.

Audit relevance:
    Every call emits a ``QUOTE_CONFIG_TRACE`` log record with the source
    and checksum, tying each evaluation to the configuration that governed
    it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from quote_config.loader import compute_checksum, load_config, parse_config
from quote_config.schema import (
    BaselinePolicy,
    EvaluationConfig,
    ExplanationPolicy,
    QuoteNumberPolicy,
    RetryPolicy,
)

_logger = logging.getLogger("quote_kernel.config")

CONFIG_ENV_VAR = "QUOTE_ENGINE_CONFIG"

DEFAULT_CONFIG_FILE = Path(__file__).parent / "default.yaml"


def get_active_config(path: Path | str | None = None) -> EvaluationConfig:
    """
    Return the configuration in force.

    Resolution order: explicit ``path``, then ``$QUOTE_ENGINE_CONFIG``,
    then the built-in defaults.

    Raises:
        ConfigurationError: if the file is structurally invalid.
        FileNotFoundError: if a named file does not exist.
    """
    chosen = path or os.environ.get(CONFIG_ENV_VAR)
    if chosen:
        config = load_config(Path(chosen))
    else:
        config = EvaluationConfig(checksum=compute_checksum({}))

    _logger.info(
        "QUOTE_CONFIG_TRACE",
        extra={
            "trace_type": "QUOTE_CONFIG_TRACE",
            "config_source": config.source,
            "checksum": config.checksum,
            "high_threshold": config.anomaly.high,
            "extreme_threshold": config.anomaly.extreme,
        },
    )
    return config


__all__ = [
    "BaselinePolicy",
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_FILE",
    "EvaluationConfig",
    "ExplanationPolicy",
    "QuoteNumberPolicy",
    "RetryPolicy",
    "get_active_config",
    "load_config",
    "parse_config",
]
