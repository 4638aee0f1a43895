"""
Core types and pure helpers for the remittance lending pool.

This module provides the foundations shared by every calculator and the desk:
1. Decimal context and money/percent rounding
2. Amount parsing (user input -> validated Decimal)
3. Exceptions: LendingError and the domain-specific error types
4. Enums: OperationKind, OperationStatus, ExecuteResult
5. Protocols: DeskView for read-only access to desk state

Nothing in this module mutates state.
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN, getcontext
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable, TYPE_CHECKING

if TYPE_CHECKING:
    from .calculators.pool_ledger import PoolState
    from .calculators.position import LenderPosition
    from .calculators.loans import Loan
    from .calculators.collateral import CollateralToken


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Pool arithmetic must be deterministic. The global context is configured
# once at import time.
#
# PRECONDITION: No other code should modify the global Decimal context.
# If thread-local contexts are needed, use decimal.localcontext().
#
_POOL_DECIMAL_CONTEXT = getcontext()
_POOL_DECIMAL_CONTEXT.prec = 50
_POOL_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Money is held at cent precision, percentages at two places.
MONEY_PLACES = 2
PERCENT_PLACES = 2

# Tolerance used when comparing stored money against derived money.
MONEY_TOLERANCE = Decimal("0.01")

# Settlement currency for every amount in the pool.
POOL_CURRENCY = "USDC"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LendingError(Exception):
    """Base exception for all pool and loan errors."""
    pass


class InvalidAmount(LendingError):
    """Raised when an amount is missing, zero, negative, or not a finite number."""
    pass


class ExceedsBalance(LendingError):
    """Raised when a withdrawal is larger than the lender's total value."""
    pass


class InsufficientLiquidity(LendingError):
    """Raised when a withdrawal is larger than the pool's available liquidity."""
    pass


class InvalidLoanTerms(LendingError):
    """Raised when a loan request has a non-positive duration or a negative rate."""
    pass


class CollateralRequired(LendingError):
    """Raised when a loan is requested without a collateral token."""
    pass


class IneligibleCollateral(LendingError):
    """Raised when a collateral token's reliability score is below the desk minimum."""
    pass


class LoanClosed(LendingError):
    """Raised when a payment is recorded against a retired loan."""
    pass


class LoanNotFound(LendingError):
    """Raised when a loan id does not belong to the wallet."""
    pass


class OperationInFlight(LendingError):
    """Raised when an action is re-submitted while the same action is still pending."""
    pass


class StalePoolState(LendingError):
    """Raised when the pool changed since the caller last read it."""
    pass


class WalletNotRegistered(LendingError):
    """Raised when attempting to operate on a wallet the desk does not know."""
    pass


# ============================================================================
# ENUMS
# ============================================================================

class OperationKind(str, Enum):
    """User actions that mutate desk state."""
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    LOAN_REQUEST = "loan_request"
    LOAN_PAYMENT = "loan_payment"


class OperationStatus(str, Enum):
    """Lifecycle of a submitted operation: PENDING -> CONFIRMED | REJECTED."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class ExecuteResult(Enum):
    """
    Outcome of confirming a pending operation.

    APPLIED: The operation was validated and its snapshots swapped in.
    ALREADY_APPLIED: The same intent was confirmed before (idempotent behavior).
    """
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"


# ============================================================================
# MONEY HELPERS
# ============================================================================

def to_decimal(value: Any) -> Decimal:
    """Convert int/float/str to Decimal via str(), leaving Decimals untouched."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Decimal) -> Decimal:
    """Quantize to cents with banker's rounding."""
    return to_decimal(value).quantize(Decimal(10) ** -MONEY_PLACES, rounding=ROUND_HALF_EVEN)


def round_percent(value: Decimal) -> Decimal:
    """Quantize a percentage to two places with banker's rounding."""
    return to_decimal(value).quantize(Decimal(10) ** -PERCENT_PLACES, rounding=ROUND_HALF_EVEN)


def parse_amount(raw: Any, field_name: str = "amount") -> Decimal:
    """
    Turn user input into a positive, finite Decimal rounded to cents.

    Accepts Decimal, int, float, or a decimal string (surrounding whitespace
    and thousands separators are tolerated). Booleans are rejected even though
    they are ints.

    Raises:
        InvalidAmount: if the input is missing, non-numeric, NaN, infinite,
                       zero, negative, or under one cent after rounding.
    """
    if raw is None or isinstance(raw, bool):
        raise InvalidAmount(f"Enter a valid {field_name}.")
    if isinstance(raw, str):
        raw = raw.strip().replace(",", "")
        if not raw:
            raise InvalidAmount(f"Enter a valid {field_name}.")
    try:
        value = to_decimal(raw)
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmount(f"{field_name} is not a number: {raw!r}") from None
    if value.is_nan() or value.is_infinite():
        raise InvalidAmount(f"{field_name} must be finite, got {raw!r}")
    if value <= ZERO:
        raise InvalidAmount(f"{field_name} must be positive, got {value}")
    try:
        value = round_money(value)
    except InvalidOperation:
        raise InvalidAmount(f"{field_name} is too large: {raw!r}") from None
    if value == ZERO:
        raise InvalidAmount(f"{field_name} is smaller than one cent, got {raw!r}")
    return value


def safe_ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    """numerator / denominator * 100, or 0 when the denominator is not positive."""
    if denominator <= ZERO:
        return ZERO
    return numerator / denominator * HUNDRED


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class DeskView(Protocol):
    """
    Read-only interface to desk state.

    Convenience functions that combine several calculators take a DeskView,
    declaring that they only read. LendingDesk implements it; tests use a
    FakeView.
    """

    @property
    def current_time(self) -> datetime:
        """Return the current logical time of the desk."""
        ...

    def get_pool(self) -> 'PoolState':
        """Return the current pool snapshot."""
        ...

    def get_position(self, wallet_id: str) -> 'LenderPosition':
        """Return the wallet's lender position (an empty one if it never deposited)."""
        ...

    def get_loans(self, wallet_id: str) -> List['Loan']:
        """Return the wallet's loans, newest first."""
        ...

    def get_collateral(self, wallet_id: str, token_id: int) -> Optional['CollateralToken']:
        """Return a registered collateral token, or None."""
        ...


# Snapshot of a record as a plain dict, used in the operation log.
Snapshot = Dict[str, Any]
