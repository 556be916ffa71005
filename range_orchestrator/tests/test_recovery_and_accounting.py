#!/usr/bin/env python3
"""
Stuck Position Recovery and Accounting Validation Tests
"""

import sys
import os
import pytest

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from range_orchestrator.core.position import PositionState
from range_orchestrator.core.yield_venue import SimulatedLendingVenue
from range_orchestrator.engine.config import OrchestratorConfig
from range_orchestrator.engine.rebalancing_engine import RebalancingEngine
from range_orchestrator.engine.recovery import StuckPositionWorklist

POOL = "POOL:ASSET0/ASSET1"
IN_TICK = 150
OUT_TICK = 1000


class TestStuckPositionWorklist:

    def setup_method(self):
        self.worklist = StuckPositionWorklist()

    def test_add_is_idempotent_and_counts_failures(self):
        assert self.worklist.add("0xa")
        assert not self.worklist.add("0xa")
        assert len(self.worklist) == 1
        assert self.worklist.failure_count("0xa") == 2
        assert self.worklist.total_added == 1

    def test_insertion_order_preserved(self):
        for position_id in ("0xc", "0xa", "0xb"):
            self.worklist.add(position_id)
        assert self.worklist.snapshot() == ["0xc", "0xa", "0xb"]

    def test_remove(self):
        self.worklist.add("0xa")
        assert self.worklist.remove("0xa")
        assert not self.worklist.remove("0xa")
        assert "0xa" not in self.worklist
        assert self.worklist.failure_count("0xa") == 0
        assert self.worklist.total_removed == 1

    def test_iteration_allows_removal(self):
        for position_id in ("0xa", "0xb"):
            self.worklist.add(position_id)
        for position_id in self.worklist:
            self.worklist.remove(position_id)
        assert len(self.worklist) == 0


class TestRecoverySweep:
    """Three positions stuck on asset1 withdrawals"""

    def setup_method(self):
        self.venue = SimulatedLendingVenue(seed=3)
        self.engine = RebalancingEngine(self.venue)
        self.position_ids = []
        for lower in (0, 100, 140):
            result = self.engine.after_add_liquidity(POOL, lower, lower + 200, 1000, 1000, IN_TICK)
            self.position_ids.append(result.position_id)
            self.engine.post_trade(result.position_id, IN_TICK, OUT_TICK)

        self.venue.fail_withdrawals_for.add(1)
        for position_id in self.position_ids:
            self.engine.pre_trade(position_id, IN_TICK)

    def test_failed_withdrawals_fill_worklist(self):
        assert self.engine.get_stuck_positions() == self.position_ids
        for position_id in self.position_ids:
            assert self.engine.get_position(position_id).state == PositionState.STUCK

    def test_sweep_with_venue_still_failing_changes_nothing(self):
        report = self.engine.retry_stuck_positions()

        assert report.attempted == self.position_ids
        assert report.still_stuck == self.position_ids
        assert report.recovered == []
        assert not report.success
        assert self.engine.get_stuck_positions() == self.position_ids
        for position_id in self.position_ids:
            assert self.engine.get_position(position_id).yield_amounts == (0, 800)

    def test_sweep_recovers_everything_once_venue_heals(self):
        self.venue.fail_withdrawals_for.clear()

        report = self.engine.retry_stuck_positions()

        assert report.success
        assert report.recovered == self.position_ids
        assert self.engine.get_stuck_positions() == []
        for position_id in self.position_ids:
            position = self.engine.get_position(position_id)
            assert position.state == PositionState.IN_RANGE
            assert position.reserve_amounts == (1000, 1000)

    def test_sweep_is_idempotent(self):
        self.venue.fail_withdrawals_for.clear()
        self.engine.retry_stuck_positions()
        report = self.engine.retry_stuck_positions()
        assert report.attempted == []
        assert report.success

    def test_worklist_never_grows_across_sweeps(self):
        sizes = [len(self.engine.stuck_positions)]
        for _ in range(3):
            self.engine.retry_stuck_positions()
            sizes.append(len(self.engine.stuck_positions))
        self.venue.fail_withdrawals_for.clear()
        self.engine.retry_stuck_positions()
        sizes.append(len(self.engine.stuck_positions))
        assert sizes == sorted(sizes, reverse=True)
        assert sizes[-1] == 0

    def test_missing_record_dropped_from_worklist(self):
        self.engine.ledger.delete(self.position_ids[0])
        report = self.engine.retry_stuck_positions()
        assert report.dropped == [self.position_ids[0]]
        assert self.position_ids[0] not in self.engine.get_stuck_positions()

    def test_in_range_trade_also_recovers(self):
        self.venue.fail_withdrawals_for.clear()
        result = self.engine.pre_trade(self.position_ids[1], IN_TICK)

        assert result.success
        assert self.position_ids[1] not in self.engine.get_stuck_positions()
        events = [e["event"] for e in self.engine.rebalancing_events]
        assert "position_recovered" in events

    def test_repeat_failures_counted(self):
        self.engine.retry_stuck_positions()
        assert self.engine.stuck_positions.failure_count(self.position_ids[0]) == 2
        stuck_events = [e for e in self.engine.rebalancing_events
                        if e["event"] == "position_stuck" and e["position_id"] == self.position_ids[0]]
        assert stuck_events[-1]["failure_count"] == 2

    def test_sweep_recorded_in_history(self):
        self.engine.retry_stuck_positions()
        record = self.engine.recovery_events[-1]
        assert record["attempted"] == 3
        assert record["still_stuck"] == 3
        assert record["worklist_size"] == 3


class TestAccountingValidation:

    def setup_method(self):
        self.venue = SimulatedLendingVenue(seed=5)
        self.engine = RebalancingEngine(self.venue, OrchestratorConfig(max_allowed_discrepancy=10))
        self.position_id = self.engine.after_add_liquidity(POOL, 100, 200, 1000, 1000, IN_TICK).position_id

    def test_in_range_position_matches_amm(self):
        assert self.engine.validate_accounting(self.position_id, 1000, 1000) == (True, 0)

    def test_small_drift_within_tolerance(self):
        valid, discrepancy = self.engine.validate_accounting(self.position_id, 995, 1002)
        assert valid
        assert discrepancy == 7

    def test_large_drift_reported(self):
        valid, discrepancy = self.engine.validate_accounting(self.position_id, 900, 1000)
        assert not valid
        assert discrepancy == 100
        # validation is read-only
        assert self.engine.get_position(self.position_id).reserve_amounts == (1000, 1000)

    def test_yield_balance_counted_via_venue(self):
        self.engine.post_trade(self.position_id, IN_TICK, OUT_TICK)
        assert self.engine.validate_accounting(self.position_id, 200, 200) == (True, 0)

    def test_venue_shortfall_detected(self):
        self.engine.post_trade(self.position_id, IN_TICK, OUT_TICK)
        # funds leave the venue account behind the engine's back
        self.venue.withdraw(0, 500, self.engine.config.venue_holder)

        valid, discrepancy = self.engine.validate_accounting(self.position_id, 200, 200)
        assert not valid
        assert discrepancy == 500

        report = self.engine.validate_venue_accounting()
        assert report[0]["shortfall"] == 500
        assert not report[0]["valid"]
        assert report[1]["valid"]

    def test_venue_report_after_deposit(self):
        self.engine.post_trade(self.position_id, IN_TICK, OUT_TICK)
        report = self.engine.validate_venue_accounting()
        for asset in (0, 1):
            assert report[asset]["total_deposited"] == 800
            assert report[asset]["ledger_principal"] == 800
            assert report[asset]["outstanding_balance"] == 800
            assert report[asset]["valid"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
