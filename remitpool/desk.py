"""
desk.py - Stateful Lending Desk

The LendingDesk is the central state manager for the lending pool. It is the
only module that mutates state; the calculators it calls are pure.

Key responsibilities:
    - Implements the DeskView protocol for read-only access by pure functions
    - Owns the PoolState and every wallet's position, loans, and collateral
    - Runs operations in two phases: submit (PENDING) then confirm (CONFIRMED
      or REJECTED), with one in-flight operation per wallet and action
    - Applies operations atomically: every new snapshot is computed first and
      swapped in only if all of them succeed
    - Keeps an audit trail of every applied operation
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set, Tuple
import hashlib
import logging

from .calculators.collateral import CollateralToken, check_eligibility
from .calculators.loans import Loan, record_payment, request_loan
from .calculators.pool_ledger import PoolState, apply_deposit, apply_withdraw, create_pool
from .calculators.position import LenderPosition, deposit, withdraw
from .config import DeskConfig
from .core import (
    MONEY_TOLERANCE, ZERO,
    CollateralRequired, ExecuteResult, LendingError, LoanNotFound,
    OperationInFlight, OperationKind, OperationStatus, Snapshot,
    StalePoolState, WalletNotRegistered,
    parse_amount,
)


logger = logging.getLogger(__name__)


# ============================================================================
# OPERATION RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class StateChange:
    """
    Before/after snapshot of one record touched by an operation.

    Attributes:
        record: Which record changed ("pool", "position:<wallet>", "loan:<id>")
        old_state: Snapshot before the change (None for a new record)
        new_state: Snapshot after the change
    """
    record: str
    old_state: Optional[Snapshot]
    new_state: Snapshot

    def changed_fields(self) -> Dict[str, Tuple[Any, Any]]:
        """Fields that differ between old and new state, as (old, new) pairs."""
        old = self.old_state or {}
        changes = {}
        for key in set(old) | set(self.new_state):
            old_val = old.get(key)
            new_val = self.new_state.get(key)
            if old_val != new_val:
                changes[key] = (old_val, new_val)
        return changes


@dataclass(frozen=True, slots=True)
class PendingOperation:
    """
    A submitted user action waiting for confirmation - represents INTENT.

    intent_id is derived from the content plus the desk's submission counter,
    so two identical deposits submitted one after the other are two intents,
    while confirming the same PendingOperation twice is detected.

    Attributes:
        kind: Which action this is
        wallet_id: Wallet that submitted it
        amount: Validated amount (None for a default loan payment)
        submitted_at: Desk time at submission
        pool_version: Pool version the submission was validated against
        nonce: Desk submission counter
        params: Extra action parameters as sorted (key, value) pairs
        intent_id: Content hash (auto-computed)
    """
    kind: OperationKind
    wallet_id: str
    amount: Optional[Decimal]
    submitted_at: datetime
    pool_version: int
    nonce: int
    params: Tuple[Tuple[str, Any], ...] = ()
    intent_id: str = field(default="")

    def __post_init__(self):
        if not self.intent_id:
            parts = [
                f"kind:{self.kind.value}",
                f"wallet:{self.wallet_id}",
                f"amount:{self.amount}",
                f"nonce:{self.nonce}",
            ]
            parts.extend(f"{key}:{value}" for key, value in self.params)
            digest = hashlib.sha256("|".join(parts).encode()).hexdigest()[:16]
            object.__setattr__(self, 'intent_id', digest)

    def param(self, key: str, default: Any = None) -> Any:
        return dict(self.params).get(key, default)

    def __repr__(self) -> str:
        return f"PendingOperation({self.kind.value} {self.amount} by {self.wallet_id}, intent={self.intent_id})"


@dataclass(frozen=True, slots=True)
class Operation:
    """
    An applied, immutable record of desk state changes - represents FACT.

    Attributes:
        kind: Which action was applied
        wallet_id: Wallet that submitted it
        amount: Amount moved (None for a default loan payment)
        intent_id: From the PendingOperation
        exec_id: Unique execution identifier (desk + sequence + time)
        desk_name: Desk that applied it
        execution_time: Desk time when applied
        sequence_number: Monotonic within the desk
        changes: Snapshots of every record touched
    """
    kind: OperationKind
    wallet_id: str
    amount: Optional[Decimal]
    intent_id: str
    exec_id: str
    desk_name: str
    execution_time: datetime
    sequence_number: int
    changes: Tuple[StateChange, ...]

    def __repr__(self) -> str:
        w = 80
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            f"┌{bar}┐",
            f"│{pad(' Operation: ' + self.exec_id)}│",
            f"├{bar}┤",
            f"│{pad('   kind           : ' + self.kind.value)}│",
            f"│{pad('   wallet         : ' + self.wallet_id)}│",
            f"│{pad('   amount         : ' + str(self.amount))}│",
            f"│{pad('   intent_id      : ' + self.intent_id)}│",
            f"│{pad('   execution_time : ' + str(self.execution_time))}│",
        ]
        for change in self.changes:
            lines.append(f"├{bar}┤")
            lines.append(f"│{pad(' [' + change.record + ']')}│")
            for name, (old_val, new_val) in sorted(change.changed_fields().items()):
                lines.append(f"│{pad(f'      {name}: {old_val} → {new_val}')}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)


@dataclass(slots=True)
class _Plan:
    """New snapshots computed for an operation, not yet applied."""
    pool: Optional[PoolState] = None
    position: Optional[LenderPosition] = None
    loans: Optional[List[Loan]] = None
    changes: List[StateChange] = field(default_factory=list)
    allocated_loan_id: Optional[int] = None


# ============================================================================
# LENDING DESK
# ============================================================================

class LendingDesk:
    """
    In-memory lending desk with validated, atomic, auditable operations.

    Implements the DeskView protocol, so the desk can be passed to the
    overview functions that only read.

    Design Principles:
        - All mutation goes through submit_* / confirm (or the one-shot
          helpers built on them). Callers never touch snapshots directly.
        - A failed operation raises its typed error and leaves the pool,
          positions, and loans exactly as they were.

    Thread Safety:
        Not thread-safe. One desk per session.

    Example:
        desk = LendingDesk("main", pool=create_pool(786_000, 464_000, "11.4"))
        desk.register_wallet("alice")
        desk.deposit("alice", "10000")
        desk.get_pool().total_value_locked  # Decimal("1260000.00")
    """

    def __init__(
        self,
        name: str,
        pool: Optional[PoolState] = None,
        config: Optional[DeskConfig] = None,
        initial_time: Optional[datetime] = None,
        verbose: bool = False,
        test_mode: bool = False,
    ):
        """
        Create a desk.

        Args:
            name: Desk identifier
            pool: Starting pool snapshot (default: empty pool)
            config: Policy settings (default: DeskConfig())
            initial_time: Starting logical time (default: 1970-01-01)
            verbose: Include the full operation box in INFO log lines
            test_mode: Allow set_position() calls (default: False)
        """
        self.name = name
        self.config = config or DeskConfig()
        self.verbose = verbose
        self._test_mode = test_mode
        self._pool: PoolState = pool or create_pool(0, 0)
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)

        self.registered_wallets: Set[str] = set()
        self._positions: Dict[str, LenderPosition] = {}
        self._loans: Dict[str, List[Loan]] = {}
        self._collateral: Dict[str, Dict[int, CollateralToken]] = {}

        self._pending: Dict[str, PendingOperation] = {}
        self._in_flight: Dict[Tuple[str, OperationKind], str] = {}
        self._status: Dict[str, OperationStatus] = {}
        self.seen_intent_ids: Set[str] = set()
        self.operation_log: List[Operation] = []

        self._next_nonce: int = 0
        self._next_sequence: int = 0
        self._next_loan_id: int = self.config.first_loan_id

    # ========================================================================
    # DeskView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the desk."""
        return self._current_time

    def get_pool(self) -> PoolState:
        return self._pool

    def get_position(self, wallet_id: str) -> LenderPosition:
        """
        Return the wallet's lender position.

        Raises:
            WalletNotRegistered: If wallet is not registered
        """
        self._require_wallet(wallet_id)
        return self._positions.get(wallet_id, LenderPosition.empty())

    def get_loans(self, wallet_id: str) -> List[Loan]:
        """Return a copy of the wallet's loans, newest first."""
        self._require_wallet(wallet_id)
        return list(self._loans.get(wallet_id, []))

    def get_collateral(self, wallet_id: str, token_id: int) -> Optional[CollateralToken]:
        self._require_wallet(wallet_id)
        return self._collateral.get(wallet_id, {}).get(token_id)

    def list_wallets(self) -> Set[str]:
        return self.registered_wallets.copy()

    def get_status(self, intent_id: str) -> Optional[OperationStatus]:
        """Status of a submitted operation, or None if the desk never saw it."""
        return self._status.get(intent_id)

    def pending_operations(self) -> List[PendingOperation]:
        return list(self._pending.values())

    # ========================================================================
    # CONSISTENCY
    # ========================================================================

    def verify_consistency(self, tolerance: Decimal = MONEY_TOLERANCE) -> Dict[str, Any]:
        """
        Check the pool and positions against their invariants.

        Checks:
        - Pool components are non-negative
        - total_borrowed does not exceed total_value_locked
        - Every position's total_value equals principal + earned_interest
        - Lender principal across wallets does not exceed total_value_locked

        Returns:
            Dict with keys:
            - 'valid': bool - True if no discrepancies were found
            - 'pool': Snapshot of the current pool
            - 'discrepancies': List[Dict] - one entry per violated check

        Example:
            result = desk.verify_consistency()
            assert result['valid'], result['discrepancies']
        """
        pool = self._pool
        discrepancies = []

        if pool.available_liquidity < ZERO or pool.total_borrowed < ZERO:
            discrepancies.append({
                'check': 'non_negative_pool',
                'available_liquidity': pool.available_liquidity,
                'total_borrowed': pool.total_borrowed,
            })
        if pool.total_borrowed > pool.total_value_locked + tolerance:
            discrepancies.append({
                'check': 'borrowed_within_tvl',
                'total_borrowed': pool.total_borrowed,
                'total_value_locked': pool.total_value_locked,
            })

        total_principal = Decimal("0")
        for wallet_id in sorted(self._positions):
            position = self._positions[wallet_id]
            total_principal += position.principal
            difference = abs(position.total_value - (position.principal + position.earned_interest))
            if difference > tolerance:
                discrepancies.append({
                    'check': 'position_identity',
                    'wallet': wallet_id,
                    'difference': difference,
                })
        if total_principal > pool.total_value_locked + tolerance:
            discrepancies.append({
                'check': 'positions_within_pool',
                'total_principal': total_principal,
                'total_value_locked': pool.total_value_locked,
            })

        return {
            'valid': len(discrepancies) == 0,
            'pool': pool.to_dict(),
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the desk's logical clock. Time only moves forward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        """
        Register a new wallet (one connected session).

        Raises:
            ValueError: If wallet is empty or already registered
        """
        if not wallet_id or not wallet_id.strip():
            raise ValueError("wallet_id cannot be empty")
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self.registered_wallets.add(wallet_id)
        logger.debug("Registered wallet %s on desk %s", wallet_id, self.name)
        return wallet_id

    def register_collateral(self, wallet_id: str, token: CollateralToken) -> None:
        """
        Record a collateral token minted for a wallet by the verification flow.

        Raises:
            WalletNotRegistered: If wallet is not registered
            ValueError: If the token id is already registered for the wallet
        """
        self._require_wallet(wallet_id)
        tokens = self._collateral.setdefault(wallet_id, {})
        if token.token_id in tokens:
            raise ValueError(f"Collateral #{token.token_id} already registered for {wallet_id}")
        tokens[token.token_id] = token
        logger.info(
            "Registered collateral #%s for %s (score %s)",
            token.token_id, wallet_id, token.reliability_score,
        )

    def set_position(self, wallet_id: str, position: LenderPosition) -> None:
        """
        Replace a wallet's position directly.

        WARNING: This bypasses the pool coupling and the operation log. It is
        only available in test mode; use deposit() and withdraw() otherwise.

        Raises:
            LendingError: If called when test_mode is False
            WalletNotRegistered: If wallet is not registered
        """
        if not self._test_mode:
            raise LendingError(
                "set_position() is disabled in production mode. "
                "Use deposit() and withdraw() to change positions. "
                "Set test_mode=True when creating the desk for testing."
            )
        self._require_wallet(wallet_id)
        self._positions[wallet_id] = position

    # ========================================================================
    # SUBMISSION
    # ========================================================================

    def submit_deposit(self, wallet_id: str, amount: Any) -> PendingOperation:
        return self._submit(OperationKind.DEPOSIT, wallet_id, parse_amount(amount))

    def submit_withdraw(self, wallet_id: str, amount: Any) -> PendingOperation:
        return self._submit(OperationKind.WITHDRAW, wallet_id, parse_amount(amount))

    def submit_loan_request(
        self,
        wallet_id: str,
        token_id: Optional[int],
        amount: Any,
        duration_months: Any = 12,
        rate: Any = None,
    ) -> PendingOperation:
        """
        Submit a loan request against a registered collateral token.

        rate is an APR in percent; None uses the token's tier rate.
        """
        params = (
            ('duration_months', duration_months),
            ('rate', rate),
            ('token_id', token_id),
        )
        return self._submit(OperationKind.LOAN_REQUEST, wallet_id, parse_amount(amount), params)

    def submit_loan_payment(self, wallet_id: str, loan_id: int, amount: Any = None) -> PendingOperation:
        """Submit one installment; amount defaults to the loan's monthly payment."""
        parsed = None if amount is None else parse_amount(amount)
        return self._submit(OperationKind.LOAN_PAYMENT, wallet_id, parsed, (('loan_id', loan_id),))

    def _submit(
        self,
        kind: OperationKind,
        wallet_id: str,
        amount: Optional[Decimal],
        params: Tuple[Tuple[str, Any], ...] = (),
    ) -> PendingOperation:
        self._require_wallet(wallet_id)
        slot = (wallet_id, kind)
        if slot in self._in_flight:
            raise OperationInFlight(
                f"A {kind.value} for {wallet_id} is already pending "
                f"(intent={self._in_flight[slot]})"
            )

        pending = PendingOperation(
            kind=kind,
            wallet_id=wallet_id,
            amount=amount,
            submitted_at=self._current_time,
            pool_version=self._pool.version,
            nonce=self._next_nonce,
            params=params,
        )
        # Refuse submissions that cannot apply against the current state.
        self._plan(pending)

        self._next_nonce += 1
        self._pending[pending.intent_id] = pending
        self._in_flight[slot] = pending.intent_id
        self._status[pending.intent_id] = OperationStatus.PENDING
        logger.debug("Submitted %r", pending)
        return pending

    # ========================================================================
    # CONFIRMATION (Mutating)
    # ========================================================================

    def confirm(self, pending: PendingOperation, expected_version: Optional[int] = None) -> ExecuteResult:
        """
        Run a pending operation to completion.

        The operation is re-validated against the current state. On success
        all new snapshots are swapped in together and an Operation is logged.
        On failure the typed error propagates, the operation is marked
        REJECTED, and no state changes.

        Args:
            pending: Operation returned by a submit_* method
            expected_version: If given, the pool version the caller last saw

        Returns:
            ExecuteResult.APPLIED if applied
            ExecuteResult.ALREADY_APPLIED if this intent was applied before

        Raises:
            LendingError: Any domain failure (InvalidAmount, ExceedsBalance,
                          InsufficientLiquidity, StalePoolState, ...)
            ValueError: If the operation is unknown or was rejected earlier
        """
        if pending.intent_id in self.seen_intent_ids:
            logger.debug("ALREADY_APPLIED: intent_id=%s", pending.intent_id)
            return ExecuteResult.ALREADY_APPLIED
        if pending.intent_id not in self._pending:
            raise ValueError(f"Operation {pending.intent_id} is not pending")

        try:
            if expected_version is not None and expected_version != self._pool.version:
                raise StalePoolState(
                    f"Pool is at version {self._pool.version}, caller expected {expected_version}"
                )
            plan = self._plan(pending)
        except LendingError as exc:
            self._finish(pending, OperationStatus.REJECTED)
            logger.warning("REJECTED %s for %s: %s", pending.kind.value, pending.wallet_id, exc)
            raise

        self._apply(pending, plan)
        self._finish(pending, OperationStatus.CONFIRMED)
        return ExecuteResult.APPLIED

    def _finish(self, pending: PendingOperation, status: OperationStatus) -> None:
        self._pending.pop(pending.intent_id, None)
        self._in_flight.pop((pending.wallet_id, pending.kind), None)
        self._status[pending.intent_id] = status

    def _plan(self, pending: PendingOperation) -> _Plan:
        """Compute every new snapshot for an operation without applying any of them."""
        wallet_id = pending.wallet_id
        pool = self._pool
        plan = _Plan()

        if pending.kind in (OperationKind.DEPOSIT, OperationKind.WITHDRAW):
            position = self.get_position(wallet_id)
            if pending.kind == OperationKind.DEPOSIT:
                plan.position = deposit(position, pool, pending.amount)
                plan.pool = apply_deposit(pool, pending.amount)
            else:
                plan.position = withdraw(
                    position, pool, pending.amount,
                    share_basis=self.config.share_basis,
                    interest_redemption_ratio=self.config.interest_redemption_ratio,
                )
                plan.pool = apply_withdraw(
                    pool, pending.amount, enforce_liquidity=self.config.enforce_liquidity
                )
            plan.changes.append(StateChange(f"position:{wallet_id}", position.to_dict(), plan.position.to_dict()))
            plan.changes.append(StateChange("pool", pool.to_dict(), plan.pool.to_dict()))

        elif pending.kind == OperationKind.LOAN_REQUEST:
            token_id = pending.param('token_id')
            collateral = self.get_collateral(wallet_id, token_id) if token_id is not None else None
            if collateral is None:
                raise CollateralRequired(
                    f"No collateral #{token_id} registered for {wallet_id}"
                )
            check_eligibility(collateral, self.config.min_reliability_score)
            loan = request_loan(
                collateral,
                pending.amount,
                pending.param('duration_months'),
                pending.param('rate'),
                now=self._current_time,
                loan_id=self._next_loan_id,
                payment_method=self.config.payment_method,
                flat_payment_rate=self.config.flat_payment_rate,
                payment_interval_days=self.config.payment_interval_days,
            )
            plan.loans = [loan] + self.get_loans(wallet_id)
            plan.allocated_loan_id = loan.id
            plan.changes.append(StateChange(f"loan:{loan.id}", None, loan.to_dict()))

        elif pending.kind == OperationKind.LOAN_PAYMENT:
            loan_id = pending.param('loan_id')
            loans = self.get_loans(wallet_id)
            index = next((i for i, loan in enumerate(loans) if loan.id == loan_id), None)
            if index is None:
                raise LoanNotFound(f"Loan {loan_id} not found for {wallet_id}")
            old_loan = loans[index]
            loans[index] = record_payment(
                old_loan, pending.amount, payment_interval_days=self.config.payment_interval_days
            )
            plan.loans = loans
            plan.changes.append(StateChange(f"loan:{loan_id}", old_loan.to_dict(), loans[index].to_dict()))

        else:
            raise ValueError(f"Unknown operation kind: {pending.kind!r}")

        return plan

    def _apply(self, pending: PendingOperation, plan: _Plan) -> None:
        if plan.pool is not None:
            self._pool = plan.pool
        if plan.position is not None:
            self._positions[pending.wallet_id] = plan.position
        if plan.loans is not None:
            self._loans[pending.wallet_id] = plan.loans
        if plan.allocated_loan_id is not None:
            self._next_loan_id = plan.allocated_loan_id + 1

        sequence = self._next_sequence
        self._next_sequence += 1
        operation = Operation(
            kind=pending.kind,
            wallet_id=pending.wallet_id,
            amount=pending.amount,
            intent_id=pending.intent_id,
            exec_id=self._generate_exec_id(sequence),
            desk_name=self.name,
            execution_time=self._current_time,
            sequence_number=sequence,
            changes=tuple(plan.changes),
        )
        self.operation_log.append(operation)
        self.seen_intent_ids.add(pending.intent_id)

        if self.verbose:
            logger.info("APPLIED %s\n%r", operation.exec_id, operation)
        else:
            logger.info(
                "APPLIED %s: %s %s by %s",
                operation.exec_id, pending.kind.value, pending.amount, pending.wallet_id,
            )

    def _generate_exec_id(self, sequence: int) -> str:
        """Format: op:{desk_name}:{sequence:012d}:{iso_time}"""
        return f"op:{self.name}:{sequence:012d}:{self._current_time.isoformat()}"

    # ========================================================================
    # ONE-SHOT HELPERS
    # ========================================================================

    def deposit(self, wallet_id: str, amount: Any) -> LenderPosition:
        """Submit and confirm a deposit; return the wallet's new position."""
        self.confirm(self.submit_deposit(wallet_id, amount))
        return self.get_position(wallet_id)

    def withdraw(self, wallet_id: str, amount: Any) -> LenderPosition:
        """Submit and confirm a withdrawal; return the wallet's new position."""
        self.confirm(self.submit_withdraw(wallet_id, amount))
        return self.get_position(wallet_id)

    def request_loan(
        self,
        wallet_id: str,
        token_id: Optional[int],
        amount: Any,
        duration_months: Any = 12,
        rate: Any = None,
    ) -> Loan:
        """Submit and confirm a loan request; return the new loan."""
        self.confirm(self.submit_loan_request(wallet_id, token_id, amount, duration_months, rate))
        return self._loans[wallet_id][0]

    def record_loan_payment(self, wallet_id: str, loan_id: int, amount: Any = None) -> Loan:
        """Submit and confirm one installment; return the updated loan."""
        self.confirm(self.submit_loan_payment(wallet_id, loan_id, amount))
        return next(loan for loan in self._loans[wallet_id] if loan.id == loan_id)

    # ========================================================================
    # HELPERS
    # ========================================================================

    def _require_wallet(self, wallet_id: str) -> None:
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
