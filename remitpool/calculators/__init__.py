"""
Calculators module - Pure pool, position, loan, and collateral arithmetic.

Each calculator takes explicit snapshots and returns new ones; none of them
hold state. The LendingDesk is the only caller that swaps snapshots in.

All calculator functions and records are re-exported here for convenience.
"""

# Collateral
from .collateral import (
    CollateralToken,
    ReliabilityTier,
    TIER_BANDS,
    tier_for_score,
    tier_description,
    indicative_rate,
    check_eligibility,
)

# Pool ledger
from .pool_ledger import (
    PoolState,
    create_pool,
    utilization,
    apply_deposit,
    apply_withdraw,
)

# Position accountant
from .position import (
    LenderPosition,
    PortfolioSplit,
    deposit as position_deposit,
    withdraw as position_withdraw,
    portfolio_split,
    projected_monthly_yield,
    share_impact,
)

# Loan tracker
from .loans import (
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
