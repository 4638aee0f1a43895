"""
conftest.py - Shared pytest fixtures for remitpool tests

Provides common fixtures used across unit, conformance, and functional tests:
- The reference pool and lender position from the lender dashboard
- A collateral token and sample borrower loans
- Desks (empty, seeded, with a borrower holding collateral, legacy rules)
"""

import pytest
from decimal import Decimal

from remitpool import (
    DeskConfig,
    LenderPosition,
    LendingDesk,
    create_pool,
)

from tests.builders import START, make_collateral, make_loan
from tests.fake_view import FakeView


# =============================================================================
# RECORD FIXTURES
# =============================================================================

@pytest.fixture
def reference_pool():
    """Pool from the lender dashboard: TVL 1,250,000 with 786,000 borrowed."""
    return create_pool(total_borrowed="786000", available_liquidity="464000", current_apy="11.4")


@pytest.fixture
def reference_position():
    """Lender position from the dashboard: 54,000 principal, 3,180 interest."""
    return LenderPosition(
        principal=Decimal("54000"),
        earned_interest=Decimal("3180"),
        share_percentage=Decimal("4.2"),
    )


@pytest.fixture
def collateral():
    return make_collateral()


@pytest.fixture
def borrower_loans():
    """Two active loans, the second one due later."""
    return [
        make_loan(1012, "15000", "9600", "12.5", "690", due_in_days=9, payments_made=6, total_payments=24),
        make_loan(1013, "8000", "5200", "10.2", "420", due_in_days=14, payments_made=9, total_payments=18),
    ]


@pytest.fixture
def make_view():
    """Factory for FakeView instances."""
    return FakeView


# =============================================================================
# DESK FIXTURES
# =============================================================================

@pytest.fixture
def empty_desk():
    """Desk with an empty pool and no wallets."""
    return LendingDesk("test", initial_time=START)


@pytest.fixture
def desk(reference_pool):
    """Desk seeded with the reference pool and wallets alice (lender) and bob (borrower)."""
    desk = LendingDesk("test", pool=reference_pool, initial_time=START, test_mode=True)
    desk.register_wallet("alice")
    desk.register_wallet("bob")
    return desk


@pytest.fixture
def borrower_desk(desk, collateral):
    """Seeded desk where bob holds collateral token #7284."""
    desk.register_collateral("bob", collateral)
    return desk


@pytest.fixture
def legacy_desk(reference_pool):
    """Desk using the pre-withdrawal share rule and clamping pool liquidity."""
    config = DeskConfig(share_basis="pre", enforce_liquidity=False)
    desk = LendingDesk("legacy", pool=reference_pool, config=config, initial_time=START, test_mode=True)
    desk.register_wallet("alice")
    return desk
