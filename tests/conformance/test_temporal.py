"""
Temporal Conformance Tests

INVARIANT: Time-based behavior respects ordering and causality.

    ∀ operations o1, o2:
        o1 applied before o2 ⟹ seq(o1) < seq(o2), time(o1) <= time(o2)

    ∀ loan L, payment p:
        due(p(L)) = due(L) + interval
        balance(p(L)) <= balance(L)

This ensures:
- Time can only advance forward
- Operations log their execution time
- Loans move toward retirement with every installment
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from decimal import Decimal
from datetime import datetime, timedelta

from remitpool import (
    LendingDesk, LoanClosed, create_pool, is_retired, progress, record_payment, request_loan,
)
from tests.builders import START, make_collateral


def _desk(initial_time=START):
    desk = LendingDesk("test", pool=create_pool(786000, 464000), initial_time=initial_time)
    desk.register_wallet("alice")
    desk.register_wallet("bob")
    desk.register_collateral("bob", make_collateral())
    return desk


class TestTemporalOrdering:
    """Tests for temporal ordering of operations."""

    def test_log_ordered_by_execution(self):
        desk = _desk()
        for day in range(5):
            desk.advance_time(START + timedelta(days=day))
            desk.deposit("alice", "100")
        assert [op.sequence_number for op in desk.operation_log] == [0, 1, 2, 3, 4]
        times = [op.execution_time for op in desk.operation_log]
        assert times == sorted(times)

    def test_execution_time_matches_desk_time(self):
        desk = _desk()
        later = START + timedelta(hours=6)
        desk.advance_time(later)
        desk.deposit("alice", "100")
        assert desk.operation_log[0].execution_time == later
        assert desk.operation_log[0].exec_id.endswith(later.isoformat())

    def test_same_time_advance_allowed(self):
        desk = _desk()
        desk.advance_time(START)
        assert desk.current_time == START

    def test_advance_time_rejects_past(self):
        desk = _desk()
        with pytest.raises(ValueError):
            desk.advance_time(START - timedelta(seconds=1))

    def test_microsecond_precision_preserved(self):
        precise = datetime(2025, 1, 1, 12, 30, 45, 123456)
        assert _desk(precise).current_time == precise

    def test_initial_time_defaults_to_epoch(self):
        desk = LendingDesk("test")
        assert desk.current_time == datetime(1970, 1, 1)

    def test_new_loan_due_one_interval_after_request(self):
        desk = _desk()
        desk.advance_time(START + timedelta(days=10))
        loan = desk.request_loan("bob", 7284, "5000")
        assert loan.originated_at == START + timedelta(days=10)
        assert loan.next_due_date == START + timedelta(days=40)

    @given(st.integers(min_value=1, max_value=10))
    @settings(max_examples=20)
    def test_submission_time_recorded(self, hours):
        desk = _desk()
        desk.advance_time(START + timedelta(hours=hours))
        pending = desk.submit_deposit("alice", "100")
        assert pending.submitted_at == START + timedelta(hours=hours)


class TestLoanLifecycle:
    """Loans march toward retirement one installment at a time."""

    @given(
        st.decimals(min_value=Decimal("100"), max_value=Decimal("100000"), places=2),
        st.integers(min_value=1, max_value=36),
        st.sampled_from([None, "0", "8.5", "17.9", "24"]),
    )
    @settings(max_examples=50)
    def test_full_term_retires_loan(self, amount, months, rate):
        loan = request_loan(make_collateral(), amount, months, rate, now=START, loan_id=1000)
        previous = loan
        while not is_retired(loan):
            loan = record_payment(loan)
            assert Decimal("0") <= progress(previous) < progress(loan) <= Decimal("100")
            assert loan.balance <= previous.balance
            assert loan.payments_made == previous.payments_made + 1
            assert loan.next_due_date == previous.next_due_date + timedelta(days=30)
            previous = loan
        assert loan.payments_made <= months
        assert loan.balance == Decimal("0")
        assert is_retired(loan)
        with pytest.raises(LoanClosed):
            record_payment(loan)

    @given(st.lists(st.decimals(min_value=Decimal("1"), max_value=Decimal("5000"), places=2), min_size=1, max_size=23))
    @settings(max_examples=50)
    def test_payments_never_increase_balance(self, payments):
        loan = request_loan(make_collateral(), "20000", 24, None, now=START, loan_id=1000)
        for amount in payments:
            if is_retired(loan):
                break
            paid = record_payment(loan, amount)
            assert paid.balance <= loan.balance
            assert paid.balance >= Decimal("0")
            loan = paid
