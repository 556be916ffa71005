#!/usr/bin/env python3
"""
Pool Lifecycle Adapter Tests

Swap and liquidity hooks resolved through (tick_lower, tick_upper) pairs.
"""

import sys
import os
import pytest

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from range_orchestrator.adapters.pool_adapter import PoolLifecycleAdapter
from range_orchestrator.core.position import PositionState, compute_position_id
from range_orchestrator.core.yield_venue import SimulatedLendingVenue
from range_orchestrator.engine.rebalancing_engine import RebalancingEngine

POOL = "POOL:ASSET0/ASSET1"


class TestPoolLifecycleAdapter:

    def setup_method(self):
        self.venue = SimulatedLendingVenue(seed=9)
        self.engine = RebalancingEngine(self.venue)
        self.adapter = PoolLifecycleAdapter(self.engine, POOL, initial_tick=150)
        self.result = self.adapter.after_add_liquidity("alice", 100, 200, 1000, 1000)
        self.position_id = self.result.position_id

    def test_add_liquidity_tracks_position(self):
        assert self.position_id == self.adapter.resolve_position_id(100, 200)
        assert self.position_id == compute_position_id(POOL, 100, 200)
        assert self.adapter.position_ids == [self.position_id]

    def test_repeat_add_does_not_duplicate(self):
        self.adapter.after_add_liquidity("bob", 100, 200, 10, 10)
        assert self.adapter.position_ids == [self.position_id]
        assert self.engine.get_position(self.position_id).reserve_amounts == (1010, 1010)

    def test_swap_round_trip(self):
        available = self.adapter.before_swap(150)
        assert available == {self.position_id: (1000, 1000)}

        results = self.adapter.after_swap(150, 300)
        assert results[self.position_id].success
        assert self.adapter.current_tick == 300
        assert self.engine.get_position(self.position_id).state == PositionState.IN_YIELD

        # still out of range: reserve share only
        assert self.adapter.before_swap() == {self.position_id: (200, 200)}

        self.adapter.after_swap(300, 150)
        assert self.adapter.before_swap() == {self.position_id: (1000, 1000)}
        assert self.adapter.swap_count == 2

    def test_swap_deltas_routed_per_position(self):
        self.adapter.after_swap(150, 160, {self.position_id: (-100, 90)})
        assert self.engine.get_position(self.position_id).reserve_amounts == (900, 1090)

    def test_failed_withdrawal_does_not_raise_into_pool(self):
        self.adapter.after_swap(150, 300)
        self.venue.fail_withdrawals_for.add(1)

        available = self.adapter.before_swap(150)

        assert available[self.position_id] == (1000, 200)
        assert self.adapter.failed_signals == 1
        assert self.engine.get_stuck_positions() == [self.position_id]

    def test_full_removal_untracks_position(self):
        self.adapter.after_swap(150, 300)
        prep = self.adapter.before_remove_liquidity(100, 200)
        assert prep.success

        self.adapter.after_remove_liquidity(100, 200, 0, 0)

        assert self.adapter.position_ids == []
        assert not self.engine.is_position_exists(self.position_id)
        assert self.adapter.before_swap(150) == {}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
