"""
overview.py - Read-only dashboard figures for lenders and borrowers

Each compute_* function loads what it needs from a DeskView once and hands
it to the pure calculators. Nothing here mutates; calling the same function
twice on the same desk gives the same answer.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

from .calculators.loans import (
    Loan, LoanSummary, active_loans, aggregate, next_due_across_loans, progress,
)
from .calculators.pool_ledger import PoolState
from .calculators.position import (
    LenderPosition, PortfolioSplit, portfolio_split, projected_monthly_yield,
)
from .core import DeskView


@dataclass(frozen=True, slots=True)
class LenderOverview:
    """What the lender dashboard shows for one wallet."""
    pool: PoolState
    position: LenderPosition
    split: PortfolioSplit
    utilization_rate: Decimal
    projected_monthly_yield: Decimal


@dataclass(frozen=True, slots=True)
class BorrowerOverview:
    """What the borrower dashboard shows for one wallet."""
    summary: LoanSummary
    next_due_loan: Optional[Loan]
    progress_by_loan: Dict[int, Decimal]


def compute_lender_overview(view: DeskView, wallet_id: str) -> LenderOverview:
    """
    Pool figures plus the wallet's position, split, and projected yield.

    The projected yield is the position's total value at the pool's current APY.
    """
    pool = view.get_pool()
    position = view.get_position(wallet_id)
    return LenderOverview(
        pool=pool,
        position=position,
        split=portfolio_split(position),
        utilization_rate=pool.utilization_rate,
        projected_monthly_yield=projected_monthly_yield(position.total_value, pool.current_apy),
    )


def compute_borrower_overview(view: DeskView, wallet_id: str) -> BorrowerOverview:
    loans = view.get_loans(wallet_id)
    return BorrowerOverview(
        summary=aggregate(loans),
        next_due_loan=next_due_across_loans(active_loans(loans)),
        progress_by_loan={loan.id: progress(loan) for loan in loans},
    )
