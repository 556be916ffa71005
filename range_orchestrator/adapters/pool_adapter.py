#!/usr/bin/env python3
"""
Pool Lifecycle Adapter

Translates AMM pool events (swaps, liquidity adds and removals) into
rebalancing engine calls. The adapter resolves (tick_lower, tick_upper) pairs to
position ids, tracks the pool's current tick, and hands back success signals
instead of raising into the pool: a failed venue call never blocks a trade.
"""

from typing import Dict, List, Optional, Tuple

from ..core.position import compute_position_id
from ..engine.rebalancing_engine import RebalancingEngine
from ..engine.results import RebalanceResult


class PoolLifecycleAdapter:
    """Adapter between a single AMM pool and the rebalancing engine"""

    def __init__(self, engine: RebalancingEngine, pool_id: str, initial_tick: int = 0):
        self.engine = engine
        self.pool_id = pool_id
        self.current_tick = initial_tick
        self.position_ids: List[str] = []

        self.swap_count = 0
        self.failed_signals = 0

    def resolve_position_id(self, tick_lower: int, tick_upper: int) -> str:
        return compute_position_id(self.pool_id, tick_lower, tick_upper)

    def _tracked_positions(self) -> List[str]:
        # Drop ids whose records were deleted by a full withdrawal
        self.position_ids = [pid for pid in self.position_ids if self.engine.is_position_exists(pid)]
        return list(self.position_ids)

    def _signal(self, result: RebalanceResult) -> RebalanceResult:
        if not result.success:
            self.failed_signals += 1
        return result

    def before_swap(self, current_tick: Optional[int] = None) -> Dict[str, Tuple[int, int]]:
        """
        Prepare every tracked position for a trade at current_tick

        Returns:
            position_id -> reserve amounts available to the trade
        """
        if current_tick is not None:
            self.current_tick = current_tick

        available = {}
        for position_id in self._tracked_positions():
            result = self._signal(self.engine.pre_trade(position_id, self.current_tick))
            available[position_id] = result.available
        return available

    def after_swap(self, tick_before: int, tick_after: int,
                   deltas: Optional[Dict[str, Tuple[int, int]]] = None) -> Dict[str, RebalanceResult]:
        """
        Report a completed swap

        Args:
            tick_before, tick_after: Pool tick around the swap
            deltas: position_id -> (delta0, delta1) reserve changes caused by the trade
        """
        deltas = deltas or {}
        results = {}
        for position_id in self._tracked_positions():
            delta0, delta1 = deltas.get(position_id, (0, 0))
            results[position_id] = self._signal(
                self.engine.post_trade(position_id, tick_before, tick_after, delta0, delta1)
            )
        self.current_tick = tick_after
        self.swap_count += 1
        return results

    def after_add_liquidity(self, owner: Optional[str], tick_lower: int, tick_upper: int,
                            amount0: int, amount1: int) -> RebalanceResult:
        result = self.engine.after_add_liquidity(
            self.pool_id, tick_lower, tick_upper, amount0, amount1, self.current_tick, owner=owner
        )
        if result.position_id not in self.position_ids:
            self.position_ids.append(result.position_id)
        return self._signal(result)

    def before_remove_liquidity(self, tick_lower: int, tick_upper: int) -> RebalanceResult:
        position_id = self.resolve_position_id(tick_lower, tick_upper)
        return self._signal(self.engine.before_remove_liquidity(position_id))

    def after_remove_liquidity(self, tick_lower: int, tick_upper: int,
                               remaining0: int, remaining1: int) -> RebalanceResult:
        position_id = self.resolve_position_id(tick_lower, tick_upper)
        result = self._signal(
            self.engine.after_remove_liquidity(position_id, remaining0, remaining1, self.current_tick)
        )
        if not self.engine.is_position_exists(position_id) and position_id in self.position_ids:
            self.position_ids.remove(position_id)
        return result
