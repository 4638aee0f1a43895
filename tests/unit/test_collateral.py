"""
test_collateral.py - Unit tests for collateral tokens and reliability tiers
"""

import pytest
from decimal import Decimal

from remitpool import (
    CollateralToken,
    ReliabilityTier,
    tier_for_score,
    tier_description,
    indicative_rate,
    check_eligibility,
    IneligibleCollateral,
)
from tests.builders import make_collateral


class TestCollateralToken:

    def test_reference_token(self, collateral):
        assert collateral.token_id == 7284
        assert collateral.monthly_flow == Decimal("2450")
        assert collateral.reliability_score == 90
        assert collateral.history_months == 20
        assert collateral.total_sent == Decimal("47000")
        assert collateral.staked is True

    def test_amounts_coerced(self):
        token = CollateralToken(1, monthly_flow=100, reliability_score=50, history_months=3, total_sent=300.5)
        assert token.total_sent == Decimal("300.5")

    @pytest.mark.parametrize("score", [-1, 101])
    def test_score_out_of_range_raises(self, score):
        with pytest.raises(ValueError, match="reliability_score"):
            make_collateral(score=score)

    def test_negative_history_raises(self):
        with pytest.raises(ValueError, match="history_months"):
            CollateralToken(1, monthly_flow=100, reliability_score=50, history_months=-1, total_sent=0)


class TestTiers:

    @pytest.mark.parametrize("score,tier", [
        (100, ReliabilityTier.ELITE),
        (90, ReliabilityTier.ELITE),
        (89, ReliabilityTier.PRIME),
        (80, ReliabilityTier.PRIME),
        (79, ReliabilityTier.STANDARD),
        (70, ReliabilityTier.STANDARD),
        (69, ReliabilityTier.GROWTH),
        (0, ReliabilityTier.GROWTH),
    ])
    def test_tier_boundaries(self, score, tier):
        assert tier_for_score(score) == tier

    @pytest.mark.parametrize("score,rate", [
        (95, Decimal("8.5")),
        (85, Decimal("10.5")),
        (75, Decimal("13.2")),
        (40, Decimal("17.9")),
    ])
    def test_indicative_rate(self, score, rate):
        assert indicative_rate(make_collateral(score=score)) == rate

    def test_description(self):
        assert tier_description(90).startswith("Excellent")
        assert tier_description(10).startswith("Fair")

    def test_score_out_of_range_raises(self):
        with pytest.raises(ValueError):
            tier_for_score(120)


class TestEligibility:

    def test_no_minimum_accepts_everything(self):
        check_eligibility(make_collateral(score=0))

    def test_score_at_minimum_accepted(self):
        check_eligibility(make_collateral(score=70), min_score=70)

    def test_score_below_minimum_raises(self):
        with pytest.raises(IneligibleCollateral, match="minimum is 70"):
            check_eligibility(make_collateral(score=69), min_score=70)
