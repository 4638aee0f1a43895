"""
config.py - Desk configuration

All tunable policy lives in one frozen dataclass handed to the LendingDesk
constructor. There is no file or environment layer; callers build a DeskConfig
(or use the defaults) the same way they choose a desk name or start time.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal

from .core import to_decimal


# Share-of-pool denominator when a lender's principal changes.
# POST: pool total after the deposit/withdrawal is applied (consistent rule).
# PRE: pool total before the change (the historical withdraw behavior).
SHARE_BASIS_POST = "post"
SHARE_BASIS_PRE = "pre"

# Monthly payment formula for new loans.
PAYMENT_FLAT = "flat"
PAYMENT_ANNUITY = "annuity"

# Fraction of every withdrawal realized out of earned interest.
DEFAULT_INTEREST_REDEMPTION_RATIO = Decimal("0.10")

# Placeholder monthly payment as a fraction of principal.
DEFAULT_FLAT_PAYMENT_RATE = Decimal("0.08")

DEFAULT_PAYMENT_INTERVAL_DAYS = 30
DEFAULT_FIRST_LOAN_ID = 1000


@dataclass(frozen=True, slots=True)
class DeskConfig:
    """
    Policy knobs for a LendingDesk.

    Attributes:
        interest_redemption_ratio: Share of a withdrawal drawn from earned interest.
        flat_payment_rate: Monthly payment / principal under PAYMENT_FLAT.
        payment_interval_days: Days between loan due dates.
        share_basis: SHARE_BASIS_POST or SHARE_BASIS_PRE for withdrawals.
        payment_method: PAYMENT_FLAT or PAYMENT_ANNUITY for new loans.
        enforce_liquidity: Reject withdrawals above available liquidity
                           instead of clamping the pool at zero.
        min_reliability_score: Lowest collateral score accepted for a loan.
        first_loan_id: First identifier handed out by the loan counter.
    """
    interest_redemption_ratio: Decimal = DEFAULT_INTEREST_REDEMPTION_RATIO
    flat_payment_rate: Decimal = DEFAULT_FLAT_PAYMENT_RATE
    payment_interval_days: int = DEFAULT_PAYMENT_INTERVAL_DAYS
    share_basis: str = SHARE_BASIS_POST
    payment_method: str = PAYMENT_FLAT
    enforce_liquidity: bool = True
    min_reliability_score: int = 0
    first_loan_id: int = DEFAULT_FIRST_LOAN_ID

    def __post_init__(self):
        object.__setattr__(self, 'interest_redemption_ratio', to_decimal(self.interest_redemption_ratio))
        object.__setattr__(self, 'flat_payment_rate', to_decimal(self.flat_payment_rate))
        if not Decimal("0") <= self.interest_redemption_ratio <= Decimal("1"):
            raise ValueError(
                f"interest_redemption_ratio must be within [0, 1], got {self.interest_redemption_ratio}"
            )
        if self.flat_payment_rate <= Decimal("0"):
            raise ValueError(f"flat_payment_rate must be positive, got {self.flat_payment_rate}")
        if self.payment_interval_days <= 0:
            raise ValueError(f"payment_interval_days must be positive, got {self.payment_interval_days}")
        if self.share_basis not in (SHARE_BASIS_POST, SHARE_BASIS_PRE):
            raise ValueError(f"Unknown share_basis: {self.share_basis!r}")
        if self.payment_method not in (PAYMENT_FLAT, PAYMENT_ANNUITY):
            raise ValueError(f"Unknown payment_method: {self.payment_method!r}")
        if not 0 <= self.min_reliability_score <= 100:
            raise ValueError(f"min_reliability_score must be within [0, 100], got {self.min_reliability_score}")
