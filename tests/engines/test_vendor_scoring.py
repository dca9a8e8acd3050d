"""
Tests for the vendor scoring engine.

Covers:
- Component scores and the weighted overall score
- Tier boundaries
- Defaults with no history
- Explanation text
"""

from decimal import Decimal

import pytest

from quote_engines.vendor_scoring import (
    QuoteObservation,
    ScoringWeights,
    VendorScoringEngine,
)
from quote_kernel.domain.values import VendorTier


def _obs(cost, approved=True, days="1"):
    return QuoteObservation(
        landed_cost=Decimal(cost), approved=approved, response_days=Decimal(days),
    )


class TestVendorScore:

    def setup_method(self):
        self.engine = VendorScoringEngine()

    def test_no_history_uses_defaults(self):
        result = self.engine.score([])

        assert result.price_score == Decimal("50.00")
        assert result.response_score == Decimal("55.00")
        assert result.consistency_score == Decimal("100.00")
        assert result.overall_score == Decimal("63.75")
        assert result.tier == VendorTier.B
        assert result.data_points == 0
        assert "Limited data available" in result.explanation

    def test_strong_vendor(self):
        history = [_obs("100.00") for _ in range(4)]

        result = self.engine.score(history)

        assert result.price_score == Decimal("100.00")
        assert result.response_score == Decimal("85.00")
        assert result.consistency_score == Decimal("100.00")
        assert result.overall_score == Decimal("96.25")
        assert result.tier == VendorTier.A
        assert result.explanation == "Score based on 4 quotes. Highly competitive pricing."

    def test_weak_vendor(self):
        history = [_obs("100", approved=False, days="10"), _obs("300", approved=False, days="10")]

        result = self.engine.score(history)

        assert result.price_score == Decimal("0.00")
        assert result.response_score == Decimal("0.00")
        assert result.consistency_score == Decimal("50.00")
        assert result.overall_score == Decimal("12.50")
        assert result.tier == VendorTier.C
        assert "may need price review" in result.explanation

    def test_single_quote_fully_consistent(self):
        result = self.engine.score([_obs("999.99", approved=False, days="2")])

        assert result.consistency_score == Decimal("100.00")

    def test_custom_weights(self):
        engine = VendorScoringEngine(
            ScoringWeights(price=Decimal("1"), response=Decimal("0"), consistency=Decimal("0")),
        )

        result = engine.score([_obs("10", approved=True), _obs("10", approved=False)])

        assert result.overall_score == Decimal("50.00")

    def test_invalid_weights(self):
        with pytest.raises(ValueError):
            ScoringWeights(price=Decimal("0.5"), response=Decimal("0.5"), consistency=Decimal("0.5"))


class TestTiers:

    @pytest.mark.parametrize(
        "score, tier",
        [
            (Decimal("100"), VendorTier.A),
            (Decimal("80"), VendorTier.A),
            (Decimal("79.99"), VendorTier.B),
            (Decimal("60"), VendorTier.B),
            (Decimal("59.99"), VendorTier.C),
            (Decimal("0"), VendorTier.C),
        ],
    )
    def test_tier_boundaries(self, score, tier):
        assert VendorScoringEngine.tier_for(score) == tier
