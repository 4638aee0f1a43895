"""
loans.py - Borrower loan tracking and amortization

This module covers a borrower's loans from request to retirement using the
same pure-function layout as the other calculators:

1. FROZEN DATACLASSES:
   - Loan: one loan's terms and lifecycle state
   - LoanSummary: aggregate figures across a wallet's loans
   - ScheduledPayment: one row of an amortization schedule

2. PURE CALCULATION FUNCTIONS:
   - progress, next_due_across_loans, aggregate, is_retired, active_loans
   - annuity_payment, amortization_schedule

3. LIFECYCLE FUNCTIONS (return new Loan snapshots):
   - request_loan: originate a loan against a collateral token
   - record_payment: apply one installment

Key Formulas:
    progress         = payments_made / total_payments * 100   (0 if no payments scheduled)
    flat payment     = principal * flat_payment_rate          (placeholder, non-amortizing)
    annuity payment  = P * r / (1 - (1 + r) ** -n), r = annual_rate / 100 / 12
    monthly interest = balance * annual_rate / 100 / 12
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional, Sequence

from ..config import (
    DEFAULT_FLAT_PAYMENT_RATE, DEFAULT_PAYMENT_INTERVAL_DAYS,
    PAYMENT_ANNUITY, PAYMENT_FLAT,
)
from ..core import (
    ZERO, CollateralRequired, InvalidAmount, InvalidLoanTerms, LoanClosed, Snapshot,
    parse_amount, round_money, safe_ratio, to_decimal,
)
from .collateral import CollateralToken, indicative_rate


MONTHS_PER_YEAR = Decimal("12")


@dataclass(frozen=True, slots=True)
class Loan:
    """
    Immutable snapshot of a single loan.

    Attributes:
        id: Identifier allocated by the desk's loan counter
        principal: Amount originally borrowed
        balance: Outstanding amount (never increases)
        annual_rate: APR in percent (e.g. 10.5)
        monthly_payment: Installment due each period
        next_due_date: When the next installment is due
        payments_made: Installments paid so far
        total_payments: Installments in the term
        collateral_token_id: Collateral token the loan was requested against
        originated_at: When the loan was issued
    """
    id: int
    principal: Decimal
    balance: Decimal
    annual_rate: Decimal
    monthly_payment: Decimal
    next_due_date: datetime
    payments_made: int
    total_payments: int
    collateral_token_id: Optional[int] = None
    originated_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, 'principal', to_decimal(self.principal))
        object.__setattr__(self, 'balance', to_decimal(self.balance))
        object.__setattr__(self, 'annual_rate', to_decimal(self.annual_rate))
        object.__setattr__(self, 'monthly_payment', to_decimal(self.monthly_payment))
        if not 0 <= self.payments_made <= self.total_payments:
            raise ValueError(
                f"payments_made must be within [0, {self.total_payments}], got {self.payments_made}"
            )
        if self.balance < ZERO:
            raise ValueError(f"balance cannot be negative, got {self.balance}")

    def to_dict(self) -> Snapshot:
        return {
            'id': self.id,
            'principal': self.principal,
            'balance': self.balance,
            'annual_rate': self.annual_rate,
            'monthly_payment': self.monthly_payment,
            'next_due_date': self.next_due_date,
            'payments_made': self.payments_made,
            'total_payments': self.total_payments,
            'collateral_token_id': self.collateral_token_id,
        }


@dataclass(frozen=True, slots=True)
class LoanSummary:
    """
    Aggregate view of a wallet's loans.

    monthly_payment is the payment of the *primary* loan, meaning the first
    loan in the collection's current ordering (newest first on the desk). It
    is not a sum. total_monthly_payment sums every active loan for callers
    that want the combined obligation.
    """
    total_borrowed: Decimal
    outstanding: Decimal
    monthly_payment: Decimal
    total_monthly_payment: Decimal
    next_due_date: Optional[datetime]
    loan_count: int


@dataclass(frozen=True, slots=True)
class ScheduledPayment:
    """One installment of a fixed-rate amortization schedule."""
    number: int
    payment: Decimal
    principal: Decimal
    interest: Decimal
    balance: Decimal


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def progress(loan: Loan) -> Decimal:
    """
    Repayment progress in percent.

    Returns Decimal("0") when the loan has no scheduled payments.

    Example:
        progress(loan)  # 6 of 24 payments -> Decimal("25")
    """
    return safe_ratio(Decimal(loan.payments_made), Decimal(loan.total_payments))


def is_retired(loan: Loan) -> bool:
    """A loan is retired once it is fully paid down or every installment is made."""
    return loan.balance <= ZERO or loan.payments_made >= loan.total_payments


def active_loans(loans: Sequence[Loan]) -> List[Loan]:
    return [loan for loan in loans if not is_retired(loan)]


def next_due_across_loans(loans: Sequence[Loan]) -> Optional[Loan]:
    """
    Return the loan with the earliest next_due_date, or None if there are none.

    Loans due at the same moment are ordered by lowest id.
    """
    if not loans:
        return None
    return min(loans, key=lambda loan: (loan.next_due_date, loan.id))


def aggregate(loans: Sequence[Loan]) -> LoanSummary:
    """
    Summarize a collection of loans. See LoanSummary for the primary-loan rule.

    Only active loans are candidates for next_due_date.
    """
    next_loan = next_due_across_loans(active_loans(loans))
    return LoanSummary(
        total_borrowed=sum((loan.principal for loan in loans), Decimal("0")),
        outstanding=sum((loan.balance for loan in loans), Decimal("0")),
        monthly_payment=loans[0].monthly_payment if loans else Decimal("0"),
        total_monthly_payment=sum(
            (loan.monthly_payment for loan in active_loans(loans)), Decimal("0")
        ),
        next_due_date=next_loan.next_due_date if next_loan else None,
        loan_count=len(loans),
    )


def annuity_payment(principal: Any, annual_rate: Any, months: int) -> Decimal:
    """
    Fixed monthly payment that fully amortizes a loan over its term.

    A zero rate spreads principal evenly across the months.

    Raises:
        InvalidLoanTerms: if months is not positive or the rate is negative.
    """
    principal = to_decimal(principal)
    rate = to_decimal(annual_rate)
    if months <= 0:
        raise InvalidLoanTerms(f"Loan duration must be positive, got {months}")
    if rate < ZERO:
        raise InvalidLoanTerms(f"annual_rate cannot be negative, got {rate}")

    monthly_rate = rate / 100 / MONTHS_PER_YEAR
    if monthly_rate == ZERO:
        return round_money(principal / months)
    growth = (1 + monthly_rate) ** months
    return round_money(principal * monthly_rate * growth / (growth - 1))


def amortization_schedule(principal: Any, annual_rate: Any, months: int) -> List[ScheduledPayment]:
    """
    Build the full schedule for a fixed-rate loan.

    Each row's interest is charged on the balance left after the previous
    row. The last row absorbs rounding so the balance ends at exactly zero.
    """
    principal = round_money(to_decimal(principal))
    payment = annuity_payment(principal, annual_rate, months)
    monthly_rate = to_decimal(annual_rate) / 100 / MONTHS_PER_YEAR

    rows: List[ScheduledPayment] = []
    balance = principal
    for number in range(1, months + 1):
        interest = round_money(balance * monthly_rate)
        if number == months:
            principal_part = balance
        else:
            principal_part = min(balance, payment - interest)
        balance = balance - principal_part
        rows.append(ScheduledPayment(
            number=number,
            payment=principal_part + interest,
            principal=principal_part,
            interest=interest,
            balance=balance,
        ))
    return rows


# ============================================================================
# LIFECYCLE FUNCTIONS
# ============================================================================

def _parse_duration(duration_months: Any) -> int:
    if isinstance(duration_months, bool):
        raise InvalidLoanTerms(f"Loan duration must be a whole number of months, got {duration_months!r}")
    try:
        months = int(str(duration_months).strip())
    except (TypeError, ValueError):
        raise InvalidLoanTerms(
            f"Loan duration must be a whole number of months, got {duration_months!r}"
        ) from None
    if months <= 0:
        raise InvalidLoanTerms(f"Loan duration must be positive, got {months}")
    return months


def _parse_rate(rate: Any) -> Decimal:
    try:
        value = to_decimal(rate)
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidLoanTerms(f"annual_rate is not a number: {rate!r}") from None
    if value.is_nan() or value.is_infinite() or value < ZERO:
        raise InvalidLoanTerms(f"annual_rate must be a non-negative number, got {rate!r}")
    return value


def request_loan(
    collateral: Optional[CollateralToken],
    amount: Any,
    duration_months: Any,
    rate: Any,
    now: datetime,
    loan_id: int,
    payment_method: str = PAYMENT_FLAT,
    flat_payment_rate: Decimal = DEFAULT_FLAT_PAYMENT_RATE,
    payment_interval_days: int = DEFAULT_PAYMENT_INTERVAL_DAYS,
) -> Loan:
    """
    Originate a loan against a collateral token.

    The new loan starts with balance == principal and no payments made; the
    first installment is due one payment interval after `now`.

    Under PAYMENT_FLAT the monthly payment is principal * flat_payment_rate
    (8% by default). This is a placeholder that does not amortize; use
    PAYMENT_ANNUITY for a real fixed-rate installment.

    Args:
        collateral: Token from the verification flow (read-only)
        amount: Requested principal
        duration_months: Term in months
        rate: APR in percent; None uses the collateral tier's indicative rate
        now: Origination time
        loan_id: Identifier for the new loan
        payment_method: PAYMENT_FLAT or PAYMENT_ANNUITY

    Returns:
        New Loan

    Raises:
        CollateralRequired: if no collateral token is given.
        InvalidAmount: if amount is not a positive number.
        InvalidLoanTerms: if duration or rate is invalid.
    """
    if collateral is None:
        raise CollateralRequired("Please provide a collateral token to request a loan.")
    amount = round_money(parse_amount(amount))
    months = _parse_duration(duration_months)
    annual_rate = indicative_rate(collateral) if rate is None else _parse_rate(rate)

    if payment_method == PAYMENT_FLAT:
        monthly = round_money(amount * to_decimal(flat_payment_rate))
    elif payment_method == PAYMENT_ANNUITY:
        monthly = annuity_payment(amount, annual_rate, months)
    else:
        raise ValueError(f"Unknown payment_method: {payment_method!r}")

    return Loan(
        id=loan_id,
        principal=amount,
        balance=amount,
        annual_rate=annual_rate,
        monthly_payment=monthly,
        next_due_date=now + timedelta(days=payment_interval_days),
        payments_made=0,
        total_payments=months,
        collateral_token_id=collateral.token_id,
        originated_at=now,
    )


def record_payment(
    loan: Loan,
    amount: Any = None,
    payment_interval_days: int = DEFAULT_PAYMENT_INTERVAL_DAYS,
) -> Loan:
    """
    Apply one installment to a loan.

    The month's interest is charged on the outstanding balance; the rest of
    the payment reduces the balance, which never goes below zero. The final
    scheduled installment is the payoff: it must cover balance plus the
    month's interest, and it is the default amount for that installment.

    Args:
        loan: Current loan snapshot
        amount: Payment amount; defaults to the loan's monthly payment, or
                the payoff on the final installment
        payment_interval_days: Days to push the next due date

    Raises:
        LoanClosed: if the loan is already retired.
        InvalidAmount: if amount is given and is not a positive number, or
                       if it falls short of the payoff on the final installment.
    """
    if is_retired(loan):
        raise LoanClosed(f"Loan {loan.id} is already repaid")

    interest = round_money(loan.balance * loan.annual_rate / 100 / MONTHS_PER_YEAR)
    payoff = loan.balance + interest
    payments_made = loan.payments_made + 1
    final = payments_made == loan.total_payments

    if amount is None:
        paid = payoff if final else loan.monthly_payment
    else:
        paid = parse_amount(amount)
    if final and paid < payoff:
        raise InvalidAmount(
            f"Final installment on loan {loan.id} must cover {payoff}, got {paid}"
        )

    principal_paid = max(ZERO, paid - interest)
    new_balance = round_money(max(ZERO, loan.balance - principal_paid))

    return replace(
        loan,
        balance=new_balance,
        payments_made=payments_made,
        next_due_date=loan.next_due_date + timedelta(days=payment_interval_days),
    )
