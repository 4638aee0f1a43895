#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Lending Desk Step by Step

A walkthrough of how the remittance lending pool keeps its books. Each step
builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Lender Side    - The pool, a deposit, a withdrawal
  4-5:  Safety         - Rejections, double confirms, stale pool state
  6-8:  Borrower Side  - Collateral, loan requests, installments

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
import logging
import sys

from remitpool import (
    CollateralToken, LenderPosition, LendingDesk, LendingError,
    ExecuteResult, create_pool,
    compute_lender_overview, compute_borrower_overview,
    projected_monthly_yield, share_impact, tier_for_score, indicative_rate,
    round_percent, POOL_CURRENCY,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)

    # Pool as shown on the lender dashboard
    total_borrowed: Decimal = Decimal("786000")
    available_liquidity: Decimal = Decimal("464000")
    current_apy: Decimal = Decimal("11.4")

    # Alice's existing stake
    alice_principal: Decimal = Decimal("54000")
    alice_interest: Decimal = Decimal("3180")

    deposit_amount: Decimal = Decimal("10000")
    withdraw_amount: Decimal = Decimal("5000")
    loan_amount: Decimal = Decimal("5000")
    loan_months: int = 12


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def show_pool(desk: LendingDesk):
    pool = desk.get_pool()
    print(f"TVL:                 {pool.total_value_locked:,.2f} {POOL_CURRENCY}")
    print(f"Total borrowed:      {pool.total_borrowed:,.2f}")
    print(f"Available liquidity: {pool.available_liquidity:,.2f}")
    print(f"Utilization:         {round_percent(pool.utilization_rate)}%")
    print(f"Pool version:        {pool.version}")


def show_position(desk: LendingDesk, wallet: str):
    position = desk.get_position(wallet)
    print(f"Principal:       {position.principal:,.2f}")
    print(f"Earned interest: {position.earned_interest:,.2f}")
    print(f"Total value:     {position.total_value:,.2f}")
    print(f"Pool share:      {position.share_percentage}%")


# ============================================================================
# LENDER SIDE (Steps 1-3)
# ============================================================================

def step_01_the_pool():
    step_header(1, "The Pool",
        "See that TVL and utilization are derived from two stored numbers.")

    print("""
    The pool stores only what is lent out and what sits idle:

        TVL         = available_liquidity + total_borrowed
        utilization = total_borrowed / TVL * 100
    """)

    wait_for_enter()

    desk = LendingDesk(
        "tutorial",
        pool=create_pool(CONFIG.total_borrowed, CONFIG.available_liquidity, CONFIG.current_apy),
        initial_time=CONFIG.start_time,
        verbose=True,
        test_mode=True,
    )
    desk.register_wallet("alice")
    desk.register_wallet("bob")
    desk.set_position("alice", LenderPosition(CONFIG.alice_principal, CONFIG.alice_interest))

    section_header("Pool")
    show_pool(desk)
    section_header("Alice")
    show_position(desk, "alice")
    return desk


def step_02_deposit(desk: LendingDesk):
    step_header(2, "A Deposit",
        "Preview a deposit, then watch pool and position move together.")

    pool = desk.get_pool()
    amount = CONFIG.deposit_amount
    print(f"Estimated monthly yield on {amount}: {projected_monthly_yield(amount, pool.current_apy)}")
    print(f"Share of current pool:          {share_impact(pool, amount)}%")

    wait_for_enter()

    print(f'\n>>> desk.deposit("alice", "{amount}")')
    desk.deposit("alice", amount)

    section_header("Pool")
    show_pool(desk)
    section_header("Alice")
    show_position(desk, "alice")
    return desk


def step_03_withdraw(desk: LendingDesk):
    step_header(3, "A Withdrawal",
        "Understand how a withdrawal splits between interest and principal.")

    print("""
    10% of every withdrawal is realized out of earned interest. What remains
    of the total value after that is principal.
    """)

    wait_for_enter()

    print(f'>>> desk.withdraw("alice", "{CONFIG.withdraw_amount}")')
    desk.withdraw("alice", CONFIG.withdraw_amount)

    section_header("Alice")
    show_position(desk, "alice")

    overview = compute_lender_overview(desk, "alice")
    print(f"\nPrincipal / interest split: "
          f"{overview.split.principal_percent}% / {overview.split.interest_percent}%")
    print(f"Projected monthly yield:    {overview.projected_monthly_yield}")
    return desk


# ============================================================================
# SAFETY (Steps 4-5)
# ============================================================================

def step_04_rejections(desk: LendingDesk):
    step_header(4, "Rejections",
        "A failed operation raises a typed error and changes nothing.")

    before = desk.get_pool()
    for amount in ("", "-5", "1000000"):
        try:
            desk.withdraw("alice", amount)
        except LendingError as exc:
            print(f"withdraw({amount!r:>10}) -> {type(exc).__name__}: {exc}")

    print(f"\nPool unchanged: {desk.get_pool() == before}")
    wait_for_enter()
    return desk


def step_05_two_phase(desk: LendingDesk):
    step_header(5, "Submit and Confirm",
        "Operations are pending until confirmed, and confirming twice is harmless.")

    pending = desk.submit_deposit("bob", "2500")
    print(f"Submitted: {pending!r}")
    print(f"Status:    {desk.get_status(pending.intent_id).value}")

    result = desk.confirm(pending)
    print(f"\nFirst confirm:  {result.value}")
    result = desk.confirm(pending)
    print(f"Second confirm: {result.value}")
    assert result == ExecuteResult.ALREADY_APPLIED

    section_header("Stale pool")
    first = desk.submit_deposit("alice", "100")
    second = desk.submit_deposit("bob", "100")
    desk.confirm(first)
    try:
        desk.confirm(second, expected_version=second.pool_version)
    except LendingError as exc:
        print(f"{type(exc).__name__}: {exc}")
    print(f"Status: {desk.get_status(second.intent_id).value}")

    wait_for_enter()
    return desk


# ============================================================================
# BORROWER SIDE (Steps 6-8)
# ============================================================================

def step_06_collateral(desk: LendingDesk):
    step_header(6, "Remittance Collateral",
        "A verified remittance history becomes a collateral token.")

    token = CollateralToken(
        token_id=7284,
        monthly_flow=Decimal("2450"),
        reliability_score=90,
        history_months=20,
        total_sent=Decimal("47000"),
        staked=True,
    )
    desk.register_collateral("bob", token)
    print(f"Token #{token.token_id}: score {token.reliability_score}, "
          f"tier {tier_for_score(token.reliability_score).value}, "
          f"indicative APR {indicative_rate(token)}%")
    wait_for_enter()
    return desk


def step_07_request_loan(desk: LendingDesk):
    step_header(7, "Requesting Loans",
        "Loans get ids from a counter and the newest shows first.")

    first = desk.request_loan("bob", 7284, CONFIG.loan_amount, CONFIG.loan_months)
    desk.advance_time(desk.current_time + timedelta(days=5))
    second = desk.request_loan("bob", 7284, "8000", 18)

    for loan in desk.get_loans("bob"):
        print(f"Loan #{loan.id}: {loan.principal} at {loan.annual_rate}%, "
              f"{loan.monthly_payment}/month, due {loan.next_due_date:%Y-%m-%d}")

    summary = compute_borrower_overview(desk, "bob").summary
    print(f"\nTotal borrowed:        {summary.total_borrowed}")
    print(f"Primary loan payment:  {summary.monthly_payment}")
    print(f"All loan payments:     {summary.total_monthly_payment}")
    print(f"Next due:              {summary.next_due_date:%Y-%m-%d}")
    wait_for_enter()
    return desk, first, second


def step_08_installments(desk: LendingDesk, loan_id: int):
    step_header(8, "Installments",
        "Each installment pays the month's interest first, then principal.")

    for _ in range(3):
        loan = desk.record_loan_payment("bob", loan_id)
        print(f"After payment {loan.payments_made}: balance {loan.balance}, "
              f"next due {loan.next_due_date:%Y-%m-%d}")

    overview = compute_borrower_overview(desk, "bob")
    print(f"\nProgress: {round_percent(overview.progress_by_loan[loan_id])}%")

    section_header("Consistency")
    print(desk.verify_consistency())
    return desk


def main():
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    desk = step_01_the_pool()
    desk = step_02_deposit(desk)
    desk = step_03_withdraw(desk)
    desk = step_04_rejections(desk)
    desk = step_05_two_phase(desk)
    desk = step_06_collateral(desk)
    desk, first, _ = step_07_request_loan(desk)
    step_08_installments(desk, first.id)

    print(f"\n{len(desk.operation_log)} operations applied.")


if __name__ == "__main__":
    main()
