"""
pool_ledger.py - Shared liquidity pool accounting

The pool is described by two stored components and everything else is
derived from them:

    total_value_locked = available_liquidity + total_borrowed
    utilization_rate   = total_borrowed / total_value_locked * 100   (0 if TVL == 0)

TVL and utilization are properties, never stored.

All functions here are pure: they take a PoolState and return a new one.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any

from ..core import (
    ZERO, InsufficientLiquidity, Snapshot,
    parse_amount, round_money, safe_ratio, to_decimal,
)


@dataclass(frozen=True, slots=True)
class PoolState:
    """
    Immutable snapshot of the shared lending pool.

    Attributes:
        total_borrowed: Liquidity currently lent out to borrowers.
        available_liquidity: Liquidity sitting idle in the pool.
        current_apy: Lender APY in percent (e.g. 11.4).
        version: Incremented on every mutation; used as an optimistic
                 concurrency token.
    """
    total_borrowed: Decimal
    available_liquidity: Decimal
    current_apy: Decimal = Decimal("0")
    version: int = 0

    def __post_init__(self):
        object.__setattr__(self, 'total_borrowed', to_decimal(self.total_borrowed))
        object.__setattr__(self, 'available_liquidity', to_decimal(self.available_liquidity))
        object.__setattr__(self, 'current_apy', to_decimal(self.current_apy))

    @property
    def total_value_locked(self) -> Decimal:
        return self.available_liquidity + self.total_borrowed

    @property
    def utilization_rate(self) -> Decimal:
        return utilization(self)

    def to_dict(self) -> Snapshot:
        return {
            'total_value_locked': self.total_value_locked,
            'total_borrowed': self.total_borrowed,
            'available_liquidity': self.available_liquidity,
            'utilization_rate': self.utilization_rate,
            'current_apy': self.current_apy,
            'version': self.version,
        }


def create_pool(
    total_borrowed: Any,
    available_liquidity: Any,
    current_apy: Any = Decimal("0"),
) -> PoolState:
    """
    Create a pool snapshot from its two stored components.

    Raises:
        ValueError: if any component is negative.
    """
    borrowed = round_money(to_decimal(total_borrowed))
    available = round_money(to_decimal(available_liquidity))
    apy = to_decimal(current_apy)
    if borrowed < ZERO:
        raise ValueError(f"total_borrowed cannot be negative, got {borrowed}")
    if available < ZERO:
        raise ValueError(f"available_liquidity cannot be negative, got {available}")
    if apy < ZERO:
        raise ValueError(f"current_apy cannot be negative, got {apy}")
    return PoolState(total_borrowed=borrowed, available_liquidity=available, current_apy=apy)


def utilization(pool: PoolState) -> Decimal:
    """
    Fraction of TVL lent out, in percent.

    PURE FUNCTION - safe to call repeatedly for rendering.

    Returns Decimal("0") for an empty pool instead of dividing by zero.

    Example:
        pool = create_pool(786_000, 464_000)
        utilization(pool)  # Decimal("62.88")
    """
    return safe_ratio(pool.total_borrowed, pool.total_value_locked)


def apply_deposit(pool: PoolState, amount: Any) -> PoolState:
    """
    Add a deposit to the pool's available liquidity.

    total_borrowed is untouched; TVL follows from the new liquidity.

    Raises:
        InvalidAmount: if amount is not a positive number.
    """
    amount = parse_amount(amount)
    return replace(
        pool,
        available_liquidity=round_money(pool.available_liquidity + amount),
        version=pool.version + 1,
    )


def apply_withdraw(pool: PoolState, amount: Any, enforce_liquidity: bool = False) -> PoolState:
    """
    Remove a withdrawal from the pool's available liquidity.

    The lender's own balance is checked by the position accountant, not here.
    By default the pool clamps at zero liquidity; with enforce_liquidity the
    shortfall is rejected instead.

    Raises:
        InvalidAmount: if amount is not a positive number.
        InsufficientLiquidity: if enforce_liquidity is set and amount exceeds
                               available liquidity.
    """
    amount = parse_amount(amount)
    if enforce_liquidity and amount > pool.available_liquidity:
        raise InsufficientLiquidity(
            f"Withdrawal of {amount} exceeds available liquidity {pool.available_liquidity}"
        )
    available = max(ZERO, pool.available_liquidity - amount)
    return replace(
        pool,
        available_liquidity=round_money(available),
        version=pool.version + 1,
    )
