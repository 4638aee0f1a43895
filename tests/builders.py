"""
builders.py - Record builders shared by the test suites
"""

from datetime import datetime, timedelta
from decimal import Decimal

from remitpool import CollateralToken, Loan


START = datetime(2025, 1, 1)


def make_loan(
    loan_id: int,
    principal="15000",
    balance=None,
    rate="12.5",
    monthly="690",
    due_in_days: int = 9,
    payments_made: int = 0,
    total_payments: int = 24,
    now: datetime = START,
) -> Loan:
    """Create a loan snapshot for testing."""
    return Loan(
        id=loan_id,
        principal=Decimal(principal),
        balance=Decimal(balance if balance is not None else principal),
        annual_rate=Decimal(rate),
        monthly_payment=Decimal(monthly),
        next_due_date=now + timedelta(days=due_in_days),
        payments_made=payments_made,
        total_payments=total_payments,
    )


def make_collateral(token_id: int = 7284, score: int = 90, staked: bool = True) -> CollateralToken:
    """Create a collateral token for testing."""
    return CollateralToken(
        token_id=token_id,
        monthly_flow=Decimal("2450"),
        reliability_score=score,
        history_months=20,
        total_sent=Decimal("47000"),
        staked=staked,
    )
