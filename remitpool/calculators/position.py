"""
position.py - Lender position accounting

A lender's stake in the pool is principal plus earned interest. Deposits add
to principal; withdrawals realize a fixed fraction of the amount out of
interest and take the rest out of principal.

Key Formulas:
    total_value        = principal + earned_interest
    share_percentage   = principal / pool_total * 100
    interest_reduction = amount * interest_redemption_ratio        (withdraw)
    new_interest       = max(0, interest - interest_reduction)
    new_principal      = max(0, (total_value - amount) - new_interest)

The pool total used for the share is the post-mutation total by default. A
deposit is always measured against pool TVL + amount, computed before the
pool itself is updated, so the caller can apply both snapshots together.

Every stored amount is rounded to cents.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from ..config import (
    DEFAULT_INTEREST_REDEMPTION_RATIO, SHARE_BASIS_POST, SHARE_BASIS_PRE,
)
from ..core import (
    ZERO, ExceedsBalance, InvalidAmount, Snapshot,
    parse_amount, round_money, round_percent, safe_ratio, to_decimal,
)
from .pool_ledger import PoolState


@dataclass(frozen=True, slots=True)
class LenderPosition:
    """
    Immutable snapshot of one wallet's stake in the pool.

    total_value is derived, so principal + earned_interest == total_value
    holds exactly.
    """
    principal: Decimal
    earned_interest: Decimal
    share_percentage: Decimal = Decimal("0")

    def __post_init__(self):
        object.__setattr__(self, 'principal', to_decimal(self.principal))
        object.__setattr__(self, 'earned_interest', to_decimal(self.earned_interest))
        object.__setattr__(self, 'share_percentage', to_decimal(self.share_percentage))
        if self.principal < ZERO:
            raise ValueError(f"principal cannot be negative, got {self.principal}")
        if self.earned_interest < ZERO:
            raise ValueError(f"earned_interest cannot be negative, got {self.earned_interest}")

    @property
    def total_value(self) -> Decimal:
        return self.principal + self.earned_interest

    @classmethod
    def empty(cls) -> LenderPosition:
        return cls(principal=Decimal("0"), earned_interest=Decimal("0"))

    def to_dict(self) -> Snapshot:
        return {
            'principal': self.principal,
            'earned_interest': self.earned_interest,
            'total_value': self.total_value,
            'share_percentage': self.share_percentage,
        }


@dataclass(frozen=True, slots=True)
class PortfolioSplit:
    """Principal and interest as percentages of a position's total value."""
    principal: Decimal
    interest: Decimal
    principal_percent: Decimal
    interest_percent: Decimal


# ============================================================================
# DEPOSIT / WITHDRAW
# ============================================================================

def deposit(position: LenderPosition, pool: PoolState, amount: Any) -> LenderPosition:
    """
    Add a deposit to a lender's principal.

    The share is measured against the pool total including this deposit.

    Args:
        position: Current lender position
        pool: Pool snapshot *before* the deposit is applied
        amount: Deposit amount (Decimal, number, or decimal string)

    Returns:
        New LenderPosition

    Raises:
        InvalidAmount: if amount is not a positive number.

    Example:
        position = LenderPosition(Decimal("54000"), Decimal("3180"))
        pool = create_pool(786_000, 464_000)
        deposit(position, pool, "10000").share_percentage  # Decimal("5.08")
    """
    amount = parse_amount(amount)
    new_principal = round_money(position.principal + amount)
    share = safe_ratio(new_principal, pool.total_value_locked + amount)
    return LenderPosition(
        principal=new_principal,
        earned_interest=position.earned_interest,
        share_percentage=round_percent(share),
    )


def withdraw(
    position: LenderPosition,
    pool: PoolState,
    amount: Any,
    share_basis: str = SHARE_BASIS_POST,
    interest_redemption_ratio: Decimal = DEFAULT_INTEREST_REDEMPTION_RATIO,
) -> LenderPosition:
    """
    Take a withdrawal out of a lender's position.

    A fixed fraction of the amount is realized from earned interest (never
    below zero); what remains of the total value after that is principal.
    Interest is also capped at the remaining total value so the position
    never reports more interest than it holds.

    Args:
        position: Current lender position
        pool: Pool snapshot *before* the withdrawal is applied
        amount: Withdrawal amount
        share_basis: SHARE_BASIS_POST measures the share against the pool
                     total after the withdrawal; SHARE_BASIS_PRE against the
                     total before it.
        interest_redemption_ratio: Fraction of the amount drawn from interest

    Returns:
        New LenderPosition

    Raises:
        InvalidAmount: if amount is not a positive number.
        ExceedsBalance: if amount is greater than position.total_value.
    """
    amount = parse_amount(amount)
    if amount > position.total_value:
        raise ExceedsBalance(
            f"Withdrawal of {amount} exceeds available balance {position.total_value}"
        )
    if share_basis not in (SHARE_BASIS_POST, SHARE_BASIS_PRE):
        raise ValueError(f"Unknown share_basis: {share_basis!r}")

    new_total_value = round_money(position.total_value - amount)
    interest_reduction = amount * to_decimal(interest_redemption_ratio)
    new_interest = max(ZERO, position.earned_interest - interest_reduction)
    new_interest = round_money(min(new_interest, new_total_value))
    new_principal = round_money(max(ZERO, new_total_value - new_interest))

    if share_basis == SHARE_BASIS_POST:
        denominator = max(ZERO, pool.available_liquidity - amount) + pool.total_borrowed
    else:
        denominator = pool.total_value_locked

    return LenderPosition(
        principal=new_principal,
        earned_interest=new_interest,
        share_percentage=round_percent(safe_ratio(new_principal, denominator)),
    )


# ============================================================================
# DISPLAY DERIVATIONS
# ============================================================================

def portfolio_split(position: LenderPosition) -> PortfolioSplit:
    """
    Split a position into principal and interest percentages.

    An empty position divides by 1, so both percentages are 0.
    """
    total = position.total_value or Decimal("1")
    return PortfolioSplit(
        principal=position.principal,
        interest=position.earned_interest,
        principal_percent=round_percent(position.principal / total * 100),
        interest_percent=round_percent(position.earned_interest / total * 100),
    )


def projected_monthly_yield(amount: Any, apy: Any) -> Decimal:
    """
    Monthly yield of a prospective deposit at the given APY (percent).

    Takes raw form input: anything that is not a valid amount previews as 0.00.
    """
    try:
        amount = parse_amount(amount)
    except InvalidAmount:
        return Decimal("0.00")
    return round_money(amount * to_decimal(apy) / 100 / 12)


def share_impact(pool: PoolState, amount: Any) -> Decimal:
    """Share of the current pool a prospective deposit would represent, in percent."""
    try:
        amount = parse_amount(amount)
    except InvalidAmount:
        return Decimal("0.00")
    return round_percent(amount / (pool.total_value_locked or Decimal("1")) * 100)
