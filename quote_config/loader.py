"""
Loader -- parse a YAML configuration file into an EvaluationConfig.

Responsibility:
    Read YAML with ``yaml.safe_load``, reject unknown keys, convert numeric
    strings to Decimal, and build the frozen schema objects.  Sections and
    keys that are omitted keep their defaults.

Invariants enforced:
    - Every structural problem raises ConfigurationError naming the dotted
      path of the offending key.
    - Thresholds and weights are parsed as Decimal from their string form;
      YAML floats are converted through ``str`` first.
    - The checksum is the SHA-256 of the canonical JSON of the raw document,
      so the same YAML content always yields the same checksum.

Failure modes:
    - ConfigurationError for unknown keys, wrong types, or values rejected
      by the schema's own validation.
    - yaml.YAMLError propagates for malformed YAML.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Callable
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from quote_config.schema import (
    BaselinePolicy,
    EvaluationConfig,
    ExplanationPolicy,
    QuoteNumberPolicy,
    RetryPolicy,
)
from quote_engines.anomaly import AnomalyThresholds
from quote_engines.recommendation import (
    DEFAULT_URGENCY_WEIGHTS,
    FactorWeights,
    ReasonThresholds,
    RecommendationPolicy,
)
from quote_engines.vendor_scoring import ScoringWeights
from quote_kernel.domain.values import Urgency
from quote_kernel.exceptions import ConfigurationError

TOP_LEVEL_SECTIONS = frozenset({
    "anomaly",
    "recommendation",
    "quote_number",
    "baseline",
    "explanation",
    "retry",
    "vendor_scoring",
})


def load_yaml_file(path: Path) -> dict[str, Any]:
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _section(data: dict[str, Any], key: str, allowed: frozenset[str]) -> dict[str, Any]:
    raw = data.get(key) or {}
    if not isinstance(raw, dict):
        raise ConfigurationError(key, "must be a mapping")
    unknown = set(raw) - allowed
    if unknown:
        raise ConfigurationError(key, f"unknown keys {sorted(unknown)}")
    return raw


def _decimal(path: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ConfigurationError(path, "must be a number")
    try:
        result = Decimal(str(value))
    except InvalidOperation as exc:
        raise ConfigurationError(path, f"not a number: {value!r}") from exc
    if not result.is_finite():
        raise ConfigurationError(path, "must be finite")
    return result


def _int(path: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(path, f"must be an integer, got {value!r}")
    return value


def _build(path: str, factory: Callable[..., Any], **kwargs: Any) -> Any:
    try:
        return factory(**kwargs)
    except ValueError as exc:
        raise ConfigurationError(path, str(exc)) from exc


def parse_anomaly(data: dict[str, Any]) -> AnomalyThresholds:
    raw = _section(data, "anomaly", frozenset({"high_threshold", "extreme_threshold"}))
    defaults = AnomalyThresholds()
    return _build(
        "anomaly",
        AnomalyThresholds,
        high=_decimal("anomaly.high_threshold", raw.get("high_threshold", defaults.high)),
        extreme=_decimal(
            "anomaly.extreme_threshold", raw.get("extreme_threshold", defaults.extreme),
        ),
    )


def _parse_factor_weights(path: str, raw: Any, default: FactorWeights) -> FactorWeights:
    if not isinstance(raw, dict):
        raise ConfigurationError(path, "must be a mapping")
    names = ("coverage", "price", "delivery", "trust")
    unknown = set(raw) - set(names)
    if unknown:
        raise ConfigurationError(path, f"unknown keys {sorted(unknown)}")
    return _build(
        path,
        FactorWeights,
        **{n: _decimal(f"{path}.{n}", raw.get(n, default.get(n))) for n in names},
    )


def parse_recommendation(data: dict[str, Any]) -> RecommendationPolicy:
    raw = _section(
        data,
        "recommendation",
        frozenset({"weights", "reason_thresholds", "max_results", "neutral_factor"}),
    )
    defaults = RecommendationPolicy()

    weights_raw = raw.get("weights") or {}
    if not isinstance(weights_raw, dict):
        raise ConfigurationError("recommendation.weights", "must be a mapping")
    unknown = set(weights_raw) - {u.value for u in Urgency}
    if unknown:
        raise ConfigurationError("recommendation.weights", f"unknown urgencies {sorted(unknown)}")
    weights = dict(DEFAULT_URGENCY_WEIGHTS)
    for urgency_name, row in weights_raw.items():
        urgency = Urgency(urgency_name)
        weights[urgency] = _parse_factor_weights(
            f"recommendation.weights.{urgency_name}", row, weights[urgency],
        )

    reasons_raw = raw.get("reason_thresholds") or {}
    if not isinstance(reasons_raw, dict):
        raise ConfigurationError("recommendation.reason_thresholds", "must be a mapping")
    reason_names = ("coverage", "price", "delivery", "trust")
    unknown = set(reasons_raw) - set(reason_names)
    if unknown:
        raise ConfigurationError(
            "recommendation.reason_thresholds", f"unknown keys {sorted(unknown)}",
        )
    reasons = ReasonThresholds(**{
        n: _decimal(
            f"recommendation.reason_thresholds.{n}",
            reasons_raw.get(n, defaults.reasons.get(n)),
        )
        for n in reason_names
    })

    return _build(
        "recommendation",
        RecommendationPolicy,
        weights=weights,
        reasons=reasons,
        max_results=_int(
            "recommendation.max_results", raw.get("max_results", defaults.max_results),
        ),
        neutral_factor=_decimal(
            "recommendation.neutral_factor",
            raw.get("neutral_factor", defaults.neutral_factor),
        ),
    )


def parse_quote_number(data: dict[str, Any]) -> QuoteNumberPolicy:
    defaults = QuoteNumberPolicy()
    raw = _section(
        data,
        "quote_number",
        frozenset({"prefix", "date_format", "sequence_width", "max_retries", "retry_base_delay_ms"}),
    )
    return _build(
        "quote_number",
        QuoteNumberPolicy,
        prefix=str(raw.get("prefix", defaults.prefix)),
        date_format=str(raw.get("date_format", defaults.date_format)),
        sequence_width=_int(
            "quote_number.sequence_width", raw.get("sequence_width", defaults.sequence_width),
        ),
        max_retries=_int(
            "quote_number.max_retries", raw.get("max_retries", defaults.max_retries),
        ),
        retry_base_delay_ms=_int(
            "quote_number.retry_base_delay_ms",
            raw.get("retry_base_delay_ms", defaults.retry_base_delay_ms),
        ),
    )


def parse_baseline(data: dict[str, Any]) -> BaselinePolicy:
    defaults = BaselinePolicy()
    raw = _section(data, "baseline", frozenset({"lookback_days", "min_samples"}))
    return _build(
        "baseline",
        BaselinePolicy,
        lookback_days=_int("baseline.lookback_days", raw.get("lookback_days", defaults.lookback_days)),
        min_samples=_int("baseline.min_samples", raw.get("min_samples", defaults.min_samples)),
    )


def parse_explanation(data: dict[str, Any]) -> ExplanationPolicy:
    defaults = ExplanationPolicy()
    raw = _section(data, "explanation", frozenset({"enabled", "timeout_seconds", "max_workers"}))
    enabled = raw.get("enabled", defaults.enabled)
    if not isinstance(enabled, bool):
        raise ConfigurationError("explanation.enabled", "must be a boolean")
    return _build(
        "explanation",
        ExplanationPolicy,
        enabled=enabled,
        timeout_seconds=float(
            _decimal("explanation.timeout_seconds", raw.get("timeout_seconds", defaults.timeout_seconds))
        ),
        max_workers=_int("explanation.max_workers", raw.get("max_workers", defaults.max_workers)),
    )


def parse_retry(data: dict[str, Any]) -> RetryPolicy:
    defaults = RetryPolicy()
    raw = _section(data, "retry", frozenset({"max_attempts", "base_delay_ms", "max_delay_ms"}))
    return _build(
        "retry",
        RetryPolicy,
        max_attempts=_int("retry.max_attempts", raw.get("max_attempts", defaults.max_attempts)),
        base_delay_ms=_int("retry.base_delay_ms", raw.get("base_delay_ms", defaults.base_delay_ms)),
        max_delay_ms=_int("retry.max_delay_ms", raw.get("max_delay_ms", defaults.max_delay_ms)),
    )


def parse_vendor_scoring(data: dict[str, Any]) -> ScoringWeights:
    defaults = ScoringWeights()
    names = ("price", "response", "consistency")
    raw = _section(data, "vendor_scoring", frozenset(names))
    return _build(
        "vendor_scoring",
        ScoringWeights,
        **{n: _decimal(f"vendor_scoring.{n}", raw.get(n, getattr(defaults, n))) for n in names},
    )


def parse_config(data: dict[str, Any], source: str = "inline") -> EvaluationConfig:
    """Build an EvaluationConfig from a parsed YAML document."""
    unknown = set(data) - TOP_LEVEL_SECTIONS
    if unknown:
        raise ConfigurationError("<root>", f"unknown sections {sorted(unknown)}")

    return EvaluationConfig(
        anomaly=parse_anomaly(data),
        recommendation=parse_recommendation(data),
        quote_number=parse_quote_number(data),
        baseline=parse_baseline(data),
        explanation=parse_explanation(data),
        retry=parse_retry(data),
        vendor_scoring=parse_vendor_scoring(data),
        source=source,
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> EvaluationConfig:
    """Load and validate a configuration file."""
    return parse_config(load_yaml_file(path), source=str(path))
