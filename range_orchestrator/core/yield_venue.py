#!/usr/bin/env python3
"""
Yield Venue Clients

Defines the interface the orchestration engine consumes for the external
lending venue, plus an in-memory lending venue used by the scenario runner and
tests. The simulated venue accrues simple APR on a per-asset supply index.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

import numpy as np

from .errors import YieldVenueError

MINUTES_PER_YEAR = 365 * 24 * 60  # 525,600 minutes per year
SHARE_EPSILON = 1e-6  # float share math can land just under a whole unit


def calculate_supply_index(current_minute: int, apr: float = 0.05, initial_index: float = 1.0) -> float:
    """
    Supply index at a point in time using linear interest (simple APR)

    Index = Initial × (1 + APR × t), with t measured in years.
    """
    if current_minute <= 0:
        return initial_index
    return initial_index * (1 + apr * (current_minute / MINUTES_PER_YEAR))


@dataclass
class VenueReceipt:
    """Proof of a successful deposit"""
    asset: int
    amount: int
    shares: float
    beneficiary: str
    minute: int = 0


class YieldVenueClient(ABC):
    """Interface to an external lending venue. Every call may raise YieldVenueError."""

    @abstractmethod
    def deposit(self, asset: int, amount: int, beneficiary: str) -> VenueReceipt:
        """Deposit amount of asset on behalf of beneficiary"""

    @abstractmethod
    def withdraw(self, asset: int, amount: int, destination: str) -> int:
        """Withdraw amount of asset to destination, returning the amount actually paid out"""

    @abstractmethod
    def query_outstanding_balance(self, asset: int, holder: str) -> int:
        """Current redeemable balance of asset for holder, including accrued yield"""


class VenueAssetPool:
    """Per-asset share accounting inside the simulated venue"""

    def __init__(self, asset: int, apr: float = 0.05):
        self.asset = asset
        self.apr = apr
        self.supply_index = 1.0
        self.shares: Dict[str, float] = {}
        self.total_shares = 0.0
        self.total_deposited = 0
        self.total_withdrawn = 0

    def balance_of(self, holder: str) -> int:
        return int(self.shares.get(holder, 0.0) * self.supply_index + SHARE_EPSILON)

    @property
    def total_balance(self) -> int:
        return int(self.total_shares * self.supply_index + SHARE_EPSILON)


class SimulatedLendingVenue(YieldVenueClient):
    """
    In-memory lending venue with interest accrual and failure injection

    Withdrawals debit the destination account's shares, so the engine deposits
    and withdraws through a single holder account.
    """

    def __init__(self, apr: float = 0.05, failure_rate: float = 0.0, seed: Optional[int] = None):
        self.apr = apr
        self.failure_rate = failure_rate
        self.current_minute = 0
        self.pools: Dict[int, VenueAssetPool] = {0: VenueAssetPool(0, apr), 1: VenueAssetPool(1, apr)}
        self.rng = np.random.default_rng(seed)

        # Failure injection
        self.fail_deposits_for: Set[int] = set()
        self.fail_withdrawals_for: Set[int] = set()
        self.halted = False

        self.operation_history: List[Dict] = []

    def _pool(self, asset: int) -> VenueAssetPool:
        if asset not in self.pools:
            raise YieldVenueError(f"Unsupported asset{asset}")
        return self.pools[asset]

    def _maybe_fail(self, operation: str, asset: int):
        if self.halted:
            raise YieldVenueError(f"Venue halted, {operation} of asset{asset} reverted")
        targets = self.fail_deposits_for if operation == "deposit" else self.fail_withdrawals_for
        if asset in targets:
            raise YieldVenueError(f"Injected {operation} failure for asset{asset}")
        if self.failure_rate > 0 and self.rng.random() < self.failure_rate:
            raise YieldVenueError(f"Random {operation} failure for asset{asset}")

    def deposit(self, asset: int, amount: int, beneficiary: str) -> VenueReceipt:
        pool = self._pool(asset)
        if amount <= 0:
            raise YieldVenueError(f"Deposit amount must be positive, got {amount}")
        self._maybe_fail("deposit", asset)

        shares = amount / pool.supply_index
        pool.shares[beneficiary] = pool.shares.get(beneficiary, 0.0) + shares
        pool.total_shares += shares
        pool.total_deposited += amount

        self.operation_history.append({
            "minute": self.current_minute,
            "operation": "deposit",
            "asset": asset,
            "amount": amount,
            "holder": beneficiary,
        })
        return VenueReceipt(asset, amount, shares, beneficiary, self.current_minute)

    def withdraw(self, asset: int, amount: int, destination: str) -> int:
        pool = self._pool(asset)
        if amount <= 0:
            raise YieldVenueError(f"Withdrawal amount must be positive, got {amount}")
        self._maybe_fail("withdraw", asset)

        balance = pool.balance_of(destination)
        # One unit of tolerance absorbs share rounding
        if amount > balance + 1:
            raise YieldVenueError(
                f"Insufficient balance for asset{asset}: requested {amount}, available {balance}"
            )

        paid = min(amount, balance)
        held_shares = pool.shares.get(destination, 0.0)
        burned = min(held_shares, paid / pool.supply_index)
        if paid == balance:
            burned = held_shares
        pool.shares[destination] = held_shares - burned
        pool.total_shares = max(0.0, pool.total_shares - burned)
        pool.total_withdrawn += paid

        self.operation_history.append({
            "minute": self.current_minute,
            "operation": "withdraw",
            "asset": asset,
            "amount": paid,
            "holder": destination,
        })
        return paid

    def query_outstanding_balance(self, asset: int, holder: str) -> int:
        return self._pool(asset).balance_of(holder)

    def accrue(self, minutes: int) -> None:
        """Advance venue time and grow each supply index by simple APR"""
        if minutes <= 0:
            return
        self.current_minute += minutes
        for pool in self.pools.values():
            pool.supply_index = calculate_supply_index(self.current_minute, pool.apr)

    def get_venue_summary(self) -> Dict[str, float]:
        return {
            "current_minute": self.current_minute,
            "supply_index_asset0": self.pools[0].supply_index,
            "supply_index_asset1": self.pools[1].supply_index,
            "total_balance_asset0": self.pools[0].total_balance,
            "total_balance_asset1": self.pools[1].total_balance,
            "num_operations": len(self.operation_history),
        }
