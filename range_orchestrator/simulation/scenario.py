#!/usr/bin/env python3
"""
Range Scenario Runner

Drives a random-walk tick path through the pool lifecycle adapter against the
simulated lending venue, recording per-step allocation metrics. Positions are
seeded from the scenario config, trades move reserve between the two assets,
and the stuck-position recovery sweep runs on a fixed cadence.
"""

import time
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..adapters.pool_adapter import PoolLifecycleAdapter
from ..core.position import PositionState
from ..core.ticks import MIN_TICK, MAX_TICK, is_in_range, tick_to_price
from ..core.yield_venue import SimulatedLendingVenue
from ..engine.config import ScenarioConfig
from ..engine.rebalancing_engine import RebalancingEngine


def generate_tick_path(steps: int, initial_tick: int, volatility: float, drift: float = 0.0,
                       seed: Optional[int] = None) -> List[int]:
    """Gaussian random walk over ticks, clipped to the valid tick range"""
    rng = np.random.default_rng(seed)
    moves = rng.normal(loc=drift, scale=volatility, size=steps)
    path = initial_tick + np.cumsum(np.round(moves))
    path = np.clip(path, MIN_TICK, MAX_TICK)
    return [int(t) for t in path]


class RangeScenarioRunner:
    """Runs one range/yield rotation scenario end to end"""

    def __init__(self, config: Optional[ScenarioConfig] = None,
                 venue: Optional[SimulatedLendingVenue] = None):
        self.config = config or ScenarioConfig()
        self.venue = venue or SimulatedLendingVenue(
            apr=self.config.venue_apr,
            failure_rate=self.config.venue_failure_rate,
            seed=self.config.random_seed,
        )
        self.engine = RebalancingEngine(self.venue, self.config.orchestrator)
        self.adapter = PoolLifecycleAdapter(self.engine, self.config.pool_id, self.config.initial_tick)

        self.tick_history: List[int] = []
        self.metrics_history: List[Dict] = []
        self.current_step = 0

    def _seed_positions(self):
        for entry in self.config.positions:
            self.adapter.after_add_liquidity(
                entry.get("owner"), entry["tick_lower"], entry["tick_upper"],
                int(entry["amount0"]), int(entry["amount1"])
            )

    def _trade_deltas(self, tick_before: int, tick_after: int) -> Dict[str, Tuple[int, int]]:
        """
        Reserve flows for positions whose range was active for the trade

        A rising tick means the pool sold asset0 for asset1; a falling tick the
        reverse. Flow size is a fixed share of the outgoing asset's reserve.
        """
        deltas = {}
        if tick_after == tick_before:
            return deltas

        price = tick_to_price(tick_after)
        fraction = self.config.trade_flow_fraction
        for position_id in self.adapter.position_ids:
            position = self.engine.ledger.find(position_id)
            if position is None or not is_in_range(tick_before, position.tick_lower, position.tick_upper):
                continue
            if tick_after > tick_before:
                out0 = int(position.reserve_amount0 * fraction)
                deltas[position_id] = (-out0, int(out0 * price))
            else:
                out1 = int(position.reserve_amount1 * fraction)
                deltas[position_id] = (int(out1 / price), -out1)
        return deltas

    def run_simulation(self, steps: Optional[int] = None) -> Dict:
        """Run the scenario and return raw histories plus final ledger state"""
        steps = steps or self.config.simulation_steps
        start_time = time.time()

        print(f"Starting {self.config.scenario_name} with {len(self.config.positions)} positions over {steps} steps")

        self._seed_positions()
        tick_path = generate_tick_path(
            steps, self.config.initial_tick, self.config.tick_volatility,
            self.config.tick_drift, self.config.random_seed
        )

        for step, tick_after in enumerate(tick_path):
            self.current_step = step
            self.engine.current_step = step
            tick_before = self.adapter.current_tick

            self.venue.accrue(self.config.minutes_per_step)

            self.adapter.before_swap(tick_before)
            deltas = self._trade_deltas(tick_before, tick_after)
            self.adapter.after_swap(tick_before, tick_after, deltas)
            self.tick_history.append(tick_after)

            if self.config.recovery_interval and step % self.config.recovery_interval == 0:
                self.engine.retry_stuck_positions()

            self._record_step_metrics(step, tick_after)

        final_positions = self.engine.ledger.snapshot()
        venue_report = self.engine.validate_venue_accounting()

        unwind_results = []
        if self.config.unwind_at_end:
            unwind_results = self._unwind_all_positions()

        execution_time = time.time() - start_time
        print(f"Completed {self.config.scenario_name} in {execution_time:.2f}s: "
              f"{len(self.engine.rebalancing_events)} events, {len(self.engine.failure_events)} failures, "
              f"{len(self.engine.stuck_positions)} positions still stuck")

        return {
            "scenario_name": self.config.scenario_name,
            "steps": steps,
            "execution_time": execution_time,
            "tick_history": self.tick_history,
            "metrics_history": self.metrics_history,
            "rebalancing_events": self.engine.rebalancing_events,
            "failure_events": self.engine.failure_events,
            "recovery_events": self.engine.recovery_events,
            "final_positions": final_positions,
            "stuck_positions": self.engine.get_stuck_positions(),
            "venue_accounting": venue_report,
            "venue_summary": self.venue.get_venue_summary(),
            "unwind_results": unwind_results,
        }

    def _record_step_metrics(self, step: int, tick: int):
        positions = list(self.engine.ledger)
        state_counts = {state.value: 0 for state in PositionState}
        for position in positions:
            state_counts[position.state.value] += 1

        self.metrics_history.append({
            "step": step,
            "minute": self.venue.current_minute,
            "tick": tick,
            "num_positions": len(positions),
            "total_reserve0": sum(p.reserve_amount0 for p in positions),
            "total_reserve1": sum(p.reserve_amount1 for p in positions),
            "total_yield0": sum(p.yield_amount0 for p in positions),
            "total_yield1": sum(p.yield_amount1 for p in positions),
            "venue_balance0": self.venue.query_outstanding_balance(0, self.engine.config.venue_holder),
            "venue_balance1": self.venue.query_outstanding_balance(1, self.engine.config.venue_holder),
            "stuck_worklist_size": len(self.engine.stuck_positions),
            **{f"positions_{state}": count for state, count in state_counts.items()},
        })

    def _unwind_all_positions(self) -> List[Dict]:
        """Withdraw every position in full; positions that cannot recover their yield stay on the ledger"""
        results = []
        for position_id in list(self.adapter.position_ids):
            position = self.engine.ledger.find(position_id)
            if position is None:
                continue
            prep = self.adapter.before_remove_liquidity(position.tick_lower, position.tick_upper)
            withdrawn = position.reserve_amounts
            self.adapter.after_remove_liquidity(position.tick_lower, position.tick_upper, 0, 0)
            results.append({
                "position_id": position_id,
                "owner": position.owner,
                "withdrawn0": withdrawn[0],
                "withdrawn1": withdrawn[1],
                "recovered_yield": prep.success,
                "deleted": not self.engine.is_position_exists(position_id),
            })
        return results
