"""
fake_view.py - Test Helper for DeskView

Provides a minimal, immutable DeskView implementation for testing the
overview functions without building a full LendingDesk.
"""

from __future__ import annotations
from datetime import datetime
from typing import Dict, List, Optional

from remitpool import CollateralToken, LenderPosition, Loan, PoolState


class FakeView:
    """
    Minimal DeskView implementation for testing read-only functions.

    Example:
        view = FakeView(
            pool=create_pool(786_000, 464_000, "11.4"),
            positions={'alice': LenderPosition(54000, 3180)},
            loans={'bob': [loan_a, loan_b]},
        )
        view.get_position('carol')  # empty LenderPosition
    """

    def __init__(
        self,
        pool: PoolState,
        positions: Optional[Dict[str, LenderPosition]] = None,
        loans: Optional[Dict[str, List[Loan]]] = None,
        collateral: Optional[Dict[str, Dict[int, CollateralToken]]] = None,
        time: Optional[datetime] = None,
    ):
        self._pool = pool
        self._positions = positions or {}
        self._loans = loans or {}
        self._collateral = collateral or {}
        self._time = time or datetime(2025, 1, 1)

    @property
    def current_time(self) -> datetime:
        return self._time

    def get_pool(self) -> PoolState:
        return self._pool

    def get_position(self, wallet_id: str) -> LenderPosition:
        return self._positions.get(wallet_id, LenderPosition.empty())

    def get_loans(self, wallet_id: str) -> List[Loan]:
        return list(self._loans.get(wallet_id, []))

    def get_collateral(self, wallet_id: str, token_id: int) -> Optional[CollateralToken]:
        return self._collateral.get(wallet_id, {}).get(token_id)
