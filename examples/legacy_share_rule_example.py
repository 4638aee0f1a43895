"""
Example: Comparing the two share-of-pool rules for withdrawals.

A lender's share is principal / pool total. After a withdrawal the desk
measures it against the pool total AFTER the withdrawal by default; the
legacy rule measured it against the total BEFORE. This example runs the same
withdrawal on both desks and shows the difference, then shows how the legacy
desk clamps pool liquidity instead of rejecting an oversized withdrawal.
"""

from datetime import datetime
from decimal import Decimal

from remitpool import (
    DeskConfig, LenderPosition, LendingDesk, LendingError,
    SHARE_BASIS_PRE, create_pool,
)


def build_desk(name, config=None):
    desk = LendingDesk(
        name,
        pool=create_pool("786000", "464000", "11.4"),
        config=config,
        initial_time=datetime(2025, 1, 1),
        test_mode=True,
    )
    desk.register_wallet("alice")
    desk.set_position("alice", LenderPosition(Decimal("54000"), Decimal("3180")))
    return desk


def main():
    print("=" * 80)
    print("SHARE RULES - Withdrawal share of pool")
    print("=" * 80)
    print()

    current = build_desk("current")
    legacy = build_desk("legacy", DeskConfig(share_basis=SHARE_BASIS_PRE, enforce_liquidity=False))

    for desk in (current, legacy):
        position = desk.withdraw("alice", "5000")
        print(f"{desk.name:>8}: principal {position.principal}, "
              f"interest {position.earned_interest}, share {position.share_percentage}%")

    print()
    print("Oversized withdrawal")
    print("-" * 80)
    for desk in (current, legacy):
        desk.set_position("alice", LenderPosition(Decimal("600000"), Decimal("0")))
        try:
            desk.withdraw("alice", "500000")
            print(f"{desk.name:>8}: applied, available liquidity now "
                  f"{desk.get_pool().available_liquidity}")
        except LendingError as exc:
            print(f"{desk.name:>8}: {type(exc).__name__}: {exc}")


if __name__ == "__main__":
    main()
