"""
remitpool - Remittance-collateralized lending pool accounting

Pool accounting, lender positions, and borrower loan tracking for a lending
product whose loans are collateralized by verified remittance history.

Usage:
    from remitpool import LendingDesk, CollateralToken, create_pool

    desk = LendingDesk("main", pool=create_pool(786_000, 464_000, "11.4"))
    desk.register_wallet("alice")
    desk.register_wallet("bob")

    # Lender side
    desk.deposit("alice", "10000")
    desk.withdraw("alice", "2500")

    # Borrower side
    desk.register_collateral("bob", CollateralToken(
        token_id=7284, monthly_flow=2450, reliability_score=90,
        history_months=20, total_sent=47000, staked=True,
    ))
    loan = desk.request_loan("bob", 7284, "5000", duration_months=12)
"""

import logging

# Core types
from .core import (
    DeskView,
    ExecuteResult,
    OperationKind,
    OperationStatus,
    LendingError,
    InvalidAmount,
    ExceedsBalance,
    InsufficientLiquidity,
    InvalidLoanTerms,
    CollateralRequired,
    IneligibleCollateral,
    LoanClosed,
    LoanNotFound,
    OperationInFlight,
    StalePoolState,
    WalletNotRegistered,
    parse_amount,
    round_money,
    round_percent,
    POOL_CURRENCY,
)

# Configuration
from .config import (
    DeskConfig,
    SHARE_BASIS_POST,
    SHARE_BASIS_PRE,
    PAYMENT_FLAT,
    PAYMENT_ANNUITY,
)

# Calculators
from .calculators import (
    CollateralToken,
    ReliabilityTier,
    tier_for_score,
    tier_description,
    indicative_rate,
    check_eligibility,
    PoolState,
    create_pool,
    utilization,
    apply_deposit,
    apply_withdraw,
    LenderPosition,
    PortfolioSplit,
    position_deposit,
    position_withdraw,
    portfolio_split,
    projected_monthly_yield,
    share_impact,
    Loan,
    LoanSummary,
    ScheduledPayment,
    progress,
    is_retired,
    active_loans,
    next_due_across_loans,
    aggregate,
    annuity_payment,
    amortization_schedule,
    request_loan,
    record_payment,
)

# Desk
from .desk import LendingDesk, PendingOperation, Operation, StateChange

# Overviews
from .overview import (
    LenderOverview,
    BorrowerOverview,
    compute_lender_overview,
    compute_borrower_overview,
)


logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
