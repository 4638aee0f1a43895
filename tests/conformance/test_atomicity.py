"""
Atomicity Conformance Tests

INVARIANT: Operations are all-or-nothing.

    ∀ operation O:
        O succeeds ⟹ pool, position, and loans are all updated
        O fails ⟹ none of them change, and nothing is logged

Partial application is impossible by construction: every new snapshot is
computed before any of them is swapped in.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from decimal import Decimal

from remitpool import (
    LenderPosition, LendingDesk, LendingError, OperationStatus,
    ExceedsBalance, InsufficientLiquidity, InvalidAmount, StalePoolState,
    create_pool,
)
from tests.builders import START, make_collateral


def _seeded_desk():
    desk = LendingDesk("test", pool=create_pool(786000, 464000, "11.4"), initial_time=START, test_mode=True)
    desk.register_wallet("alice")
    desk.register_wallet("bob")
    desk.set_position("alice", LenderPosition(Decimal("54000"), Decimal("3180")))
    desk.register_collateral("bob", make_collateral())
    return desk


def _state(desk):
    return (
        desk.get_pool(),
        desk.get_position("alice"),
        desk.get_loans("bob"),
        len(desk.operation_log),
    )


class TestAtomicityProperties:
    """Property-based atomicity tests."""

    @given(st.decimals(min_value=Decimal("57180.01"), max_value=Decimal("10000000"), places=2))
    @settings(max_examples=50)
    def test_withdraw_over_balance_changes_nothing(self, amount):
        desk = _seeded_desk()
        before = _state(desk)
        with pytest.raises(ExceedsBalance):
            desk.withdraw("alice", amount)
        assert _state(desk) == before

    @given(st.decimals(min_value=Decimal("464000.01"), max_value=Decimal("600000"), places=2))
    @settings(max_examples=50)
    def test_withdraw_over_liquidity_changes_nothing(self, amount):
        desk = _seeded_desk()
        desk.set_position("alice", LenderPosition(Decimal("600000"), Decimal("0")))
        before = _state(desk)
        with pytest.raises(InsufficientLiquidity):
            desk.withdraw("alice", amount)
        assert _state(desk) == before

    @given(st.one_of(
        st.none(),
        st.just(""),
        st.text(alphabet="abcxyz", min_size=1, max_size=5),
        st.decimals(max_value=Decimal("0"), allow_nan=False, allow_infinity=False),
    ))
    @settings(max_examples=50)
    def test_invalid_amount_changes_nothing(self, amount):
        desk = _seeded_desk()
        before = _state(desk)
        for action in (
            lambda: desk.deposit("alice", amount),
            lambda: desk.withdraw("alice", amount),
            lambda: desk.request_loan("bob", 7284, amount),
        ):
            with pytest.raises(InvalidAmount):
                action()
        assert _state(desk) == before

    @given(st.integers(min_value=1, max_value=20))
    @settings(max_examples=30)
    def test_stale_confirm_changes_nothing(self, wrong_version):
        desk = _seeded_desk()
        pending = desk.submit_deposit("alice", "100")
        before = _state(desk)
        with pytest.raises(StalePoolState):
            desk.confirm(pending, expected_version=wrong_version)
        assert _state(desk) == before
        assert desk.get_status(pending.intent_id) == OperationStatus.REJECTED


class TestAtomicityEdgeCases:
    """Specific edge cases for atomicity."""

    def test_successful_withdraw_updates_pool_and_position_together(self):
        desk = _seeded_desk()
        desk.withdraw("alice", "5000")
        operation = desk.operation_log[-1]
        assert {change.record for change in operation.changes} == {"pool", "position:alice"}
        assert desk.get_pool().available_liquidity == Decimal("459000")
        assert desk.get_position("alice").total_value == Decimal("52180")

    def test_failed_loan_request_keeps_loan_counter(self):
        desk = _seeded_desk()
        with pytest.raises(LendingError):
            desk.request_loan("bob", 7284, "5000", duration_months=-1)
        assert desk.request_loan("bob", 7284, "5000").id == 1000

    def test_rejected_confirm_keeps_other_pending_operations(self):
        desk = _seeded_desk()
        first = desk.submit_deposit("alice", "100")
        second = desk.submit_deposit("bob", "100")
        with pytest.raises(StalePoolState):
            desk.confirm(first, expected_version=3)
        assert desk.pending_operations() == [second]
