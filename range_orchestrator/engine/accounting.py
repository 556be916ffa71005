#!/usr/bin/env python3
"""
Accounting Validation

Read-only checks comparing the ledger against live balances reported by the
AMM and the yield venue. Discrepancies are reported, never corrected.
"""

from typing import Dict, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from .rebalancing_engine import RebalancingEngine


class AccountingValidator:
    """Ledger vs. reality diagnostics for a rebalancing engine"""

    def __init__(self, engine: "RebalancingEngine"):
        self.engine = engine

    def venue_share(self, asset: int, principal: int) -> int:
        """Position's proportional claim on the venue's outstanding balance"""
        total = self.engine.total_deposited[asset]
        if principal <= 0 or total <= 0:
            return 0
        outstanding = self.engine.venue.query_outstanding_balance(asset, self.engine.config.venue_holder)
        return principal * outstanding // total

    def validate_position(self, position_id: str, amm_amount0: int, amm_amount1: int) -> Tuple[bool, int]:
        """
        Compare one position's ledger totals with externally reported balances

        Args:
            position_id: Position to check
            amm_amount0, amm_amount1: Amounts the AMM reports for the position

        Returns:
            (valid, discrepancy) where valid = discrepancy < max_allowed_discrepancy
        """
        position = self.engine.ledger.get(position_id)

        discrepancy = 0
        for asset, amm_amount in zip((0, 1), (amm_amount0, amm_amount1)):
            expected = position.reserve(asset) + position.yield_amount(asset)
            principal = position.yield_amount(asset)
            # accrued yield is a gain, not a discrepancy
            actual = amm_amount + min(self.venue_share(asset, principal), principal)
            discrepancy += abs(expected - actual)

        return discrepancy < self.engine.config.max_allowed_discrepancy, discrepancy

    def validate_venue(self) -> Dict[int, Dict]:
        """
        Compare the venue-wide principal total with what the venue reports

        Outstanding balance should never fall below recorded principal; accrued
        yield makes it larger.
        """
        report = {}
        for asset in (0, 1):
            principal = self.engine.total_deposited[asset]
            ledger_principal = sum(p.yield_amount(asset) for p in self.engine.ledger)
            outstanding = self.engine.venue.query_outstanding_balance(asset, self.engine.config.venue_holder)
            shortfall = max(0, principal - outstanding)
            report[asset] = {
                "total_deposited": principal,
                "ledger_principal": ledger_principal,
                "outstanding_balance": outstanding,
                "accrued_yield": max(0, outstanding - principal),
                "shortfall": shortfall,
                "valid": (shortfall < self.engine.config.max_allowed_discrepancy
                          and ledger_principal == principal),
            }
        return report
