"""
quote_engines.anomaly -- Price anomaly classification.

Responsibility:
    Compare an actual quoted price against its expected baseline and
    classify the relative deviation into NORMAL / HIGH / EXTREMELY_HIGH.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The baseline lookup and
    the explanation call live in the services layer.

Invariants enforced:
    - deviation = (actual - expected) / expected, unrounded for
      classification and rounded to 4 places for storage.
    - Severity bands are half-open: deviation < high is NORMAL,
      high <= deviation < extreme is HIGH, deviation >= extreme is
      EXTREMELY_HIGH.  Prices below the baseline are always NORMAL.
    - high < extreme, both positive (checked on AnomalyThresholds).

Failure modes:
    - ValidationError if expected_price or actual_price is not > 0.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from quote_engines.tracer import traced_engine
from quote_kernel.db.types import round_money, round_score, to_decimal
from quote_kernel.domain.values import AnomalySeverity
from quote_kernel.exceptions import ValidationError
from quote_kernel.logging_config import get_logger

logger = get_logger("engines.anomaly")


@dataclass(frozen=True)
class AnomalyThresholds:
    """Deviation thresholds, as fractions of the expected price."""

    high: Decimal = Decimal("0.15")
    extreme: Decimal = Decimal("0.40")

    def __post_init__(self) -> None:
        if self.high <= 0:
            raise ValueError("high threshold must be positive")
        if self.extreme <= self.high:
            raise ValueError("extreme threshold must be greater than high threshold")


@dataclass(frozen=True)
class AnomalyAssessment:
    """Result of evaluating one price against its baseline."""

    expected_price: Decimal
    actual_price: Decimal
    deviation: Decimal
    severity: AnomalySeverity

    @property
    def is_anomalous(self) -> bool:
        return self.severity is not AnomalySeverity.NORMAL

    @property
    def deviation_percent(self) -> Decimal:
        return (self.deviation * Decimal("100")).quantize(Decimal("0.01"))


class PriceAnomalyDetector:
    """Classifies price deviations using configurable thresholds."""

    def __init__(self, thresholds: AnomalyThresholds | None = None):
        self.thresholds = thresholds or AnomalyThresholds()

    def classify(self, deviation: Decimal) -> AnomalySeverity:
        if deviation >= self.thresholds.extreme:
            return AnomalySeverity.EXTREMELY_HIGH
        if deviation >= self.thresholds.high:
            return AnomalySeverity.HIGH
        return AnomalySeverity.NORMAL

    @traced_engine(
        "price_anomaly", "1.0",
        fingerprint_fields=("expected_price", "actual_price"),
    )
    def evaluate(self, expected_price: Any, actual_price: Any) -> AnomalyAssessment:
        """
        Evaluate an actual price against an expected price.

        Both prices must be positive.  Severity is decided on the exact
        deviation; the stored deviation is rounded to 4 places.
        """
        expected = to_decimal(expected_price, "expected_price")
        actual = to_decimal(actual_price, "actual_price")
        if expected <= 0:
            raise ValidationError("expected_price", "must be greater than 0", expected_price)
        if actual <= 0:
            raise ValidationError("actual_price", "must be greater than 0", actual_price)

        deviation = (actual - expected) / expected
        severity = self.classify(deviation)

        return AnomalyAssessment(
            expected_price=round_money(expected),
            actual_price=round_money(actual),
            deviation=round_score(deviation),
            severity=severity,
        )
