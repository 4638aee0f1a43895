"""
collateral.py - Remittance collateral tokens and reliability tiers

A CollateralToken is minted by the verification flow from a borrower's
remittance history. This package only reads it: the reliability score picks
the APR band offered on a loan and can gate issuance altogether.

    score >= 90  ELITE     8.5% APR
    score >= 80  PRIME    10.5% APR
    score >= 70  STANDARD 13.2% APR
    otherwise    GROWTH   17.9% APR
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Tuple

from ..core import IneligibleCollateral, to_decimal


class ReliabilityTier(str, Enum):
    """APR band unlocked by a reliability score."""
    ELITE = "elite"
    PRIME = "prime"
    STANDARD = "standard"
    GROWTH = "growth"


# (minimum score, tier, indicative APR, description), highest band first
TIER_BANDS: Tuple[Tuple[int, ReliabilityTier, Decimal, str], ...] = (
    (90, ReliabilityTier.ELITE, Decimal("8.5"),
     "Excellent - unlocks the best liquidity terms."),
    (80, ReliabilityTier.PRIME, Decimal("10.5"),
     "Very good - qualifies for premium APY tiers."),
    (70, ReliabilityTier.STANDARD, Decimal("13.2"),
     "Good - access standard credit lines immediately."),
    (0, ReliabilityTier.GROWTH, Decimal("17.9"),
     "Fair - continue building remittance history to unlock more."),
)


@dataclass(frozen=True, slots=True)
class CollateralToken:
    """
    Verified remittance history, as handed over by the verification flow.

    Attributes:
        token_id: Token identifier
        monthly_flow: Average monthly remittance amount
        reliability_score: 0-100
        history_months: Months of verified history
        total_sent: Lifetime remitted amount
        staked: Whether the token is locked as collateral
    """
    token_id: int
    monthly_flow: Decimal
    reliability_score: int
    history_months: int
    total_sent: Decimal
    staked: bool = False

    def __post_init__(self):
        object.__setattr__(self, 'monthly_flow', to_decimal(self.monthly_flow))
        object.__setattr__(self, 'total_sent', to_decimal(self.total_sent))
        if not 0 <= self.reliability_score <= 100:
            raise ValueError(f"reliability_score must be within [0, 100], got {self.reliability_score}")
        if self.history_months < 0:
            raise ValueError(f"history_months cannot be negative, got {self.history_months}")


def _band(score: int) -> Tuple[int, ReliabilityTier, Decimal, str]:
    if not 0 <= score <= 100:
        raise ValueError(f"reliability_score must be within [0, 100], got {score}")
    for band in TIER_BANDS:
        if score >= band[0]:
            return band
    raise AssertionError("unreachable: lowest band starts at 0")


def tier_for_score(score: int) -> ReliabilityTier:
    return _band(score)[1]


def tier_description(score: int) -> str:
    return _band(score)[3]


def indicative_rate(collateral: CollateralToken) -> Decimal:
    """APR (percent) offered to a borrower holding this token."""
    return _band(collateral.reliability_score)[2]


def check_eligibility(collateral: CollateralToken, min_score: int = 0) -> None:
    """
    Raises:
        IneligibleCollateral: if the token's score is below min_score.
    """
    if collateral.reliability_score < min_score:
        raise IneligibleCollateral(
            f"Collateral #{collateral.token_id} scores {collateral.reliability_score}, "
            f"minimum is {min_score}"
        )
