"""
quote_config.schema -- Frozen configuration dataclasses.

Every policy value the engine uses lives here: anomaly thresholds, the
urgency weight table, reason thresholds, quote numbering, baseline lookback,
explanation timeout, retry limits and vendor scoring weights.  Values are
validated on construction, so an EvaluationConfig that exists is usable.

The threshold, weight and reason types are the engines' own dataclasses;
the schema composes them rather than duplicating their validation.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from quote_engines.anomaly import AnomalyThresholds
from quote_engines.recommendation import RecommendationPolicy
from quote_engines.vendor_scoring import ScoringWeights


@dataclass(frozen=True)
class QuoteNumberPolicy:
    """Format and contention handling of quote numbers."""

    prefix: str = "QT"
    date_format: str = "%Y%m%d"
    sequence_width: int = 6
    max_retries: int = 5
    retry_base_delay_ms: int = 10

    def __post_init__(self) -> None:
        if not self.prefix or not self.prefix.strip():
            raise ValueError("prefix must not be empty")
        if self.sequence_width < 1:
            raise ValueError("sequence_width must be at least 1")
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.retry_base_delay_ms < 0:
            raise ValueError("retry_base_delay_ms must not be negative")


@dataclass(frozen=True)
class BaselinePolicy:
    """How the expected price of an item is derived from price history."""

    lookback_days: int = 180
    min_samples: int = 1

    def __post_init__(self) -> None:
        if self.lookback_days < 1:
            raise ValueError("lookback_days must be at least 1")
        if self.min_samples < 1:
            raise ValueError("min_samples must be at least 1")


@dataclass(frozen=True)
class ExplanationPolicy:
    """Bounds on the optional text-generation call."""

    enabled: bool = True
    timeout_seconds: float = 5.0
    max_workers: int = 4

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")


@dataclass(frozen=True)
class RetryPolicy:
    """Facade-level retry of transient persistence failures."""

    max_attempts: int = 3
    base_delay_ms: int = 50
    max_delay_ms: int = 1000

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_ms < 0 or self.max_delay_ms < self.base_delay_ms:
            raise ValueError("retry delays must satisfy 0 <= base_delay_ms <= max_delay_ms")


@dataclass(frozen=True)
class EvaluationConfig:
    """The complete engine configuration."""

    anomaly: AnomalyThresholds = field(default_factory=AnomalyThresholds)
    recommendation: RecommendationPolicy = field(default_factory=RecommendationPolicy)
    quote_number: QuoteNumberPolicy = field(default_factory=QuoteNumberPolicy)
    baseline: BaselinePolicy = field(default_factory=BaselinePolicy)
    explanation: ExplanationPolicy = field(default_factory=ExplanationPolicy)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    vendor_scoring: ScoringWeights = field(default_factory=ScoringWeights)
    source: str = "defaults"
    checksum: str = ""
