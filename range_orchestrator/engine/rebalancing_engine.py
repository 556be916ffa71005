#!/usr/bin/env python3
"""
Rebalancing Engine

Per-position state machine that moves capital between the AMM reserve and the
yield venue as the pool tick enters and leaves each position's range.

Every two-asset move is executed as two independent single-asset legs. A leg
that succeeds is committed to the ledger immediately; a leg that fails is
recorded on the result and never rolls back the other leg. Withdrawal failures
park the position in STUCK and put it on the recovery worklist, which is only
drained by the recovery routine.
"""

from contextlib import contextmanager
from dataclasses import replace
from typing import Dict, List, Optional, Set, Tuple

from ..core.errors import (
    PositionBusy, Unauthorized, VenueDepositFailed, VenueWithdrawFailed
)
from ..core.position import (
    PositionData, PositionLedger, PositionState, WITHDRAWABLE_STATES,
    compute_position_id, resolve_reserve_percent
)
from ..core.ticks import has_exited_range, is_in_range
from ..core.yield_venue import YieldVenueClient
from .accounting import AccountingValidator
from .config import OrchestratorConfig
from .recovery import StuckPositionWorklist
from .results import LegResult, RebalanceResult, RecoveryReport

ASSETS = (0, 1)


class RebalancingEngine:
    """Orchestrates reserve/yield movements for every position in the ledger"""

    def __init__(self, venue: YieldVenueClient, config: Optional[OrchestratorConfig] = None,
                 ledger: Optional[PositionLedger] = None):
        self.config = config or OrchestratorConfig()
        self.venue = venue
        self.ledger = ledger or PositionLedger()
        self.stuck_positions = StuckPositionWorklist()

        # Venue-wide principal per asset, used for proportional withdrawals
        self.total_deposited: Dict[int, int] = {0: 0, 1: 0}

        self._in_flight: Set[str] = set()
        self.current_step = 0

        # Diagnostics
        self.rebalancing_events: List[Dict] = []
        self.failure_events: List[Dict] = []
        self.recovery_events: List[Dict] = []

        self.accounting = AccountingValidator(self)

    # ------------------------------------------------------------------
    # Lifecycle operations
    # ------------------------------------------------------------------

    def pre_trade(self, position_id: str, current_tick: int) -> RebalanceResult:
        """
        Make the position's capital available before a trade

        Pulls the full yield balance back into the reserve when the tick is in
        range. A failed withdrawal does not raise: the position goes STUCK and
        the result reports whatever reserve is locally available.
        """
        with self._position_operation(position_id):
            position = self.ledger.get(position_id)
            result = RebalanceResult(position_id, "pre_trade")

            if self._is_dust(position):
                result.skipped_reason = "below_min_liquidity"
            elif position.paused:
                result.skipped_reason = "paused"
            elif not is_in_range(current_tick, position.tick_lower, position.tick_upper):
                result.skipped_reason = "out_of_range"
            elif position.state in WITHDRAWABLE_STATES or position.has_yield_balance:
                if position.state == PositionState.STUCK:
                    result = self._recover_position(position, "pre_trade")
                else:
                    result = self._withdraw_all(position, "pre_trade")

            return self._finish(position, result)

    def apply_trade_delta(self, position_id: str, delta0: int, delta1: int) -> PositionData:
        """Apply signed trade flows to the reserve, flooring each asset at zero"""
        with self._position_operation(position_id):
            position = self.ledger.get(position_id)
            self._apply_delta(position, delta0, delta1)
            self.ledger.save(position)
            return replace(position)

    def post_trade(self, position_id: str, tick_before: int, tick_after: int,
                   delta0: int = 0, delta1: int = 0) -> RebalanceResult:
        """
        Rebalance after a trade

        Deposits the non-reserve share of each asset when the trade moved the
        tick out of an IN_RANGE position's range.
        """
        with self._position_operation(position_id):
            position = self.ledger.get(position_id)
            self._apply_delta(position, delta0, delta1)
            self.ledger.save(position)
            result = RebalanceResult(position_id, "post_trade")

            if self._is_dust(position):
                result.skipped_reason = "below_min_liquidity"
            elif position.paused:
                result.skipped_reason = "paused"
            elif (has_exited_range(tick_before, tick_after, position.tick_lower, position.tick_upper)
                  and position.state == PositionState.IN_RANGE):
                deposit_percent = 100 - self._reserve_percent(position)
                amounts = tuple(position.reserve(asset) * deposit_percent // 100 for asset in ASSETS)
                if any(amounts):
                    result = self._deposit_split(position, amounts, "post_trade")
                else:
                    result.skipped_reason = "nothing_to_deposit"

            return self._finish(position, result)

    def before_remove_liquidity(self, position_id: str) -> RebalanceResult:
        """Return all venue funds to the reserve so the provider can withdraw in full"""
        with self._position_operation(position_id):
            position = self.ledger.get(position_id)
            result = RebalanceResult(position_id, "before_remove_liquidity")

            if position.paused:
                result.skipped_reason = "paused"
            elif position.state == PositionState.STUCK:
                result = self._recover_position(position, "before_remove_liquidity")
            elif position.has_yield_balance:
                result = self._withdraw_all(position, "before_remove_liquidity")

            return self._finish(position, result)

    def after_remove_liquidity(self, position_id: str, remaining0: int, remaining1: int,
                               current_tick: int) -> RebalanceResult:
        """
        Record the reserve left after a provider withdrawal

        The position is deleted when nothing remains in reserve or with the
        venue. Yield that could not be recovered beforehand stays on the ledger.
        """
        if remaining0 < 0 or remaining1 < 0:
            raise ValueError(f"Remaining amounts cannot be negative: ({remaining0}, {remaining1})")

        with self._position_operation(position_id):
            position = self.ledger.get(position_id)
            result = RebalanceResult(position_id, "after_remove_liquidity")

            position.set_reserve(0, remaining0)
            position.set_reserve(1, remaining1)

            if position.is_empty:
                self.ledger.delete(position_id)
                self.stuck_positions.remove(position_id)
                result.skipped_reason = "position_deleted"
                self._record_event("position_deleted", position)
                return result

            self.ledger.save(position)

            if self._is_dust(position):
                result.skipped_reason = "below_min_liquidity"
            elif position.paused:
                result.skipped_reason = "paused"
            elif (not is_in_range(current_tick, position.tick_lower, position.tick_upper)
                  and position.state == PositionState.IN_RANGE):
                deposit_percent = self.config.post_withdrawal_deposit_percent
                amounts = tuple(position.reserve(asset) * deposit_percent // 100 for asset in ASSETS)
                if any(amounts):
                    result = self._deposit_split(position, amounts, "after_remove_liquidity")

            return self._finish(position, result)

    def after_add_liquidity(self, pool_id: str, tick_lower: int, tick_upper: int,
                            amount0: int, amount1: int, current_tick: int,
                            owner: Optional[str] = None) -> RebalanceResult:
        """
        Record a liquidity contribution

        New positions start IN_RANGE with everything in reserve. Contributions to
        an existing position while out of range send the newly added amount,
        less the default reserve share, straight to the venue.
        """
        if amount0 < 0 or amount1 < 0:
            raise ValueError(f"Contribution amounts cannot be negative: ({amount0}, {amount1})")

        position_id = compute_position_id(pool_id, tick_lower, tick_upper)
        with self._position_operation(position_id):
            position = self.ledger.find(position_id)
            result = RebalanceResult(position_id, "after_add_liquidity")

            if position is None:
                position = self.ledger.create(
                    pool_id, tick_lower, tick_upper, owner=owner,
                    amount0=amount0, amount1=amount1,
                    reserve_percent=self.config.default_reserve_percent,
                )
                self._record_event("position_created", position)
                return self._finish(position, result)

            position.set_reserve(0, position.reserve_amount0 + amount0)
            position.set_reserve(1, position.reserve_amount1 + amount1)
            if position.owner is None:
                position.owner = owner
            self.ledger.save(position)
            self._record_event("liquidity_added", position, amount0=amount0, amount1=amount1)

            depositable = position.state in (
                PositionState.IN_RANGE, PositionState.IN_YIELD, PositionState.PARTIALLY_REBALANCED
            )
            if self._is_dust(position):
                result.skipped_reason = "below_min_liquidity"
            elif position.paused:
                result.skipped_reason = "paused"
            elif not is_in_range(current_tick, position.tick_lower, position.tick_upper) and depositable:
                deposit_percent = 100 - self.config.default_reserve_percent
                amounts = (amount0 * deposit_percent // 100, amount1 * deposit_percent // 100)
                if any(amounts):
                    result = self._deposit_split(position, amounts, "after_add_liquidity")

            return self._finish(position, result)

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    def retry_stuck_positions(self) -> RecoveryReport:
        """
        Attempt a full withdrawal for every position on the stuck worklist

        Safe to call repeatedly. Recovered positions leave the worklist; failures
        stay for the next sweep. Paused positions are left alone.
        """
        report = RecoveryReport()

        for position_id in self.stuck_positions.snapshot():
            position = self.ledger.find(position_id)
            if position is None:
                self.stuck_positions.remove(position_id)
                report.dropped.append(position_id)
                continue
            if position.paused or position_id in self._in_flight:
                report.skipped.append(position_id)
                continue

            report.attempted.append(position_id)
            with self._position_operation(position_id):
                result = self._recover_position(position, "recovery_sweep")
                self._finish(position, result)

            if result.success:
                report.recovered.append(position_id)
            else:
                report.still_stuck.append(position_id)

        self.recovery_events.append({
            "step": self.current_step,
            **report.to_dict(),
            "worklist_size": len(self.stuck_positions),
        })
        if report.attempted:
            print(f"🔧 Recovery sweep: {len(report.recovered)}/{len(report.attempted)} stuck positions recovered")
        return report

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_position(self, position_id: str) -> PositionData:
        """Copy of the ledger record; raises PositionNotFound"""
        return replace(self.ledger.get(position_id))

    def get_available_liquidity(self, position_id: str) -> Tuple[int, int, PositionState]:
        position = self.ledger.get(position_id)
        amount0, amount1 = position.total_amounts
        return amount0, amount1, position.state

    def is_position_exists(self, position_id: str) -> bool:
        return self.ledger.exists(position_id)

    def get_stuck_positions(self) -> List[str]:
        return self.stuck_positions.snapshot()

    def validate_accounting(self, position_id: str, amm_amount0: int, amm_amount1: int) -> Tuple[bool, int]:
        return self.accounting.validate_position(position_id, amm_amount0, amm_amount1)

    def validate_venue_accounting(self) -> Dict[int, Dict]:
        return self.accounting.validate_venue()

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def pause(self, position_id: str, caller: str) -> PositionData:
        """Emergency stop: force STUCK and stop all automatic fund movement"""
        self._require_operator(caller, "pause positions")
        with self._position_operation(position_id):
            position = self.ledger.get(position_id)
            position.paused = True
            position.state = PositionState.STUCK
            self.ledger.save(position)
            self._record_event("position_paused", position, caller=caller)
            print(f"⏸️  Position {_short(position_id)} paused by {caller}")
            return replace(position)

    def resume(self, position_id: str, caller: str) -> PositionData:
        """Lift an emergency stop and force the position back to IN_RANGE"""
        self._require_operator(caller, "resume positions")
        with self._position_operation(position_id):
            position = self.ledger.get(position_id)
            position.paused = False
            position.state = PositionState.IN_RANGE
            self.stuck_positions.remove(position_id)
            self.ledger.save(position)
            self._record_event("position_resumed", position, caller=caller)
            if position.has_yield_balance:
                print(f"⚠️  Position {_short(position_id)} resumed with yield balance "
                      f"{position.yield_amounts} still at the venue")
            return replace(position)

    def set_reserve_percent(self, position_id: str, percent: int, caller: str) -> PositionData:
        """Change the out-of-range reserve share; 0 restores the default"""
        with self._position_operation(position_id):
            position = self.ledger.get(position_id)
            if caller != position.owner and not self.config.is_operator(caller):
                raise Unauthorized(caller, "set reserve percent")
            position.reserve_percent = resolve_reserve_percent(
                percent, default=self.config.default_reserve_percent,
                minimum=self.config.min_reserve_percent, maximum=self.config.max_reserve_percent,
            )
            self.ledger.save(position)
            self._record_event("reserve_percent_set", position, reserve_percent=position.reserve_percent)
            return replace(position)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @contextmanager
    def _position_operation(self, position_id: str):
        """Serialize lifecycle operations per position"""
        if position_id in self._in_flight:
            raise PositionBusy(position_id)
        self._in_flight.add(position_id)
        try:
            yield
        finally:
            self._in_flight.discard(position_id)

    def _require_operator(self, caller: Optional[str], action: str):
        if not self.config.is_operator(caller):
            raise Unauthorized(caller, action)

    def _is_dust(self, position: PositionData) -> bool:
        return position.total_liquidity < self.config.min_liquidity

    def _reserve_percent(self, position: PositionData) -> int:
        return position.reserve_percent or self.config.default_reserve_percent

    def _apply_delta(self, position: PositionData, delta0: int, delta1: int):
        for asset, delta in zip(ASSETS, (delta0, delta1)):
            if delta:
                position.set_reserve(asset, max(0, position.reserve(asset) + delta))

    def _redeemable_amount(self, asset: int, principal: int) -> int:
        """Position's share of the venue balance, proportional to its principal"""
        total = self.total_deposited[asset]
        if total <= 0:
            return principal
        try:
            outstanding = self.venue.query_outstanding_balance(asset, self.config.venue_holder)
        except Exception as e:
            print(f"⚠️  Balance query failed for asset{asset}, withdrawing principal only: {e}")
            return principal
        if principal >= total:
            return outstanding
        return principal * outstanding // total

    def _deposit_leg(self, position: PositionData, asset: int, amount: int) -> LegResult:
        leg = LegResult(asset, "deposit", amount)
        try:
            self.venue.deposit(asset, amount, self.config.venue_holder)
        except Exception as e:
            leg.error = VenueDepositFailed(asset, str(e))
            self._record_failure(position, leg)
            return leg

        position.set_reserve(asset, position.reserve(asset) - amount)
        position.set_yield_amount(asset, position.yield_amount(asset) + amount)
        self.total_deposited[asset] += amount
        self.ledger.save(position)
        leg.actual = amount
        return leg

    def _withdraw_leg(self, position: PositionData, asset: int) -> LegResult:
        principal = position.yield_amount(asset)
        amount = self._redeemable_amount(asset, principal)
        leg = LegResult(asset, "withdraw", amount)
        try:
            received = self.venue.withdraw(asset, amount, self.config.venue_holder)
        except Exception as e:
            leg.error = VenueWithdrawFailed(asset, str(e))
            self._record_failure(position, leg)
            return leg

        position.set_reserve(asset, position.reserve(asset) + received)
        position.set_yield_amount(asset, 0)
        self.total_deposited[asset] = max(0, self.total_deposited[asset] - principal)
        self.ledger.save(position)
        leg.actual = received
        return leg

    def _deposit_split(self, position: PositionData, amounts: Tuple[int, ...], action: str) -> RebalanceResult:
        result = RebalanceResult(position.position_id, action)
        for asset, amount in zip(ASSETS, amounts):
            if amount > 0:
                result.legs[asset] = self._deposit_leg(position, asset, amount)

        previous_state = position.state
        position.state = self._state_after_deposit(previous_state, result)
        self.ledger.save(position)

        if result.success:
            self._record_event("deposited_to_yield", position, action=action,
                               amount0=amounts[0], amount1=amounts[1])
        elif result.partial:
            print(f"⚠️  Position {_short(position.position_id)} partially rebalanced "
                  f"(failed assets: {result.failed_assets})")
            self._record_event("partial_deposit", position, action=action,
                               failed_assets=result.failed_assets)
        return result

    @staticmethod
    def _state_after_deposit(state: PositionState, result: RebalanceResult) -> PositionState:
        """Advance only on full success; a half-landed move from IN_RANGE is flagged PARTIALLY_REBALANCED"""
        if result.success:
            if state in (PositionState.IN_RANGE, PositionState.IN_YIELD):
                return PositionState.IN_YIELD
            return state
        if result.partial and state == PositionState.IN_RANGE:
            return PositionState.PARTIALLY_REBALANCED
        return state

    def _withdraw_all(self, position: PositionData, action: str) -> RebalanceResult:
        result = RebalanceResult(position.position_id, action)
        for asset in ASSETS:
            if position.yield_amount(asset) > 0:
                result.legs[asset] = self._withdraw_leg(position, asset)

        if result.success:
            position.state = PositionState.IN_RANGE
            self.ledger.save(position)
            if result.legs:
                self._record_event("withdrawn_from_yield", position, action=action,
                                   amount0=result.legs[0].actual if 0 in result.legs else 0,
                                   amount1=result.legs[1].actual if 1 in result.legs else 0)
        else:
            self._mark_stuck(position, result)
        return result

    def _recover_position(self, position: PositionData, action: str) -> RebalanceResult:
        """The single exit from STUCK: withdraw whatever is still at the venue"""
        result = self._withdraw_all(position, action)
        if result.success:
            self.stuck_positions.remove(position.position_id)
            self._record_event("position_recovered", position, action=action)
        return result

    def _mark_stuck(self, position: PositionData, result: RebalanceResult):
        newly_stuck = position.state != PositionState.STUCK
        position.state = PositionState.STUCK
        self.ledger.save(position)
        self.stuck_positions.add(position.position_id)
        if newly_stuck:
            print(f"🚨 Position {_short(position.position_id)} STUCK: withdrawal failed for "
                  f"assets {result.failed_assets}, yield still at venue {position.yield_amounts}")
        self._record_event("position_stuck", position, failed_assets=result.failed_assets,
                           failure_count=self.stuck_positions.failure_count(position.position_id))

    def _finish(self, position: PositionData, result: RebalanceResult) -> RebalanceResult:
        result.state = position.state
        result.available0, result.available1 = position.reserve_amounts
        return result

    def _record_event(self, event: str, position: PositionData, **details):
        record = {
            "step": self.current_step,
            "event": event,
            "position_id": position.position_id,
            "state": position.state.value,
            "reserve_amount0": position.reserve_amount0,
            "reserve_amount1": position.reserve_amount1,
            "yield_amount0": position.yield_amount0,
            "yield_amount1": position.yield_amount1,
        }
        record.update(details)
        self.rebalancing_events.append(record)
        if self.config.verbose:
            print(f"📊 [{self.current_step}] {event}: {_short(position.position_id)} "
                  f"reserve={position.reserve_amounts} yield={position.yield_amounts} "
                  f"state={position.state.value}")

    def _record_failure(self, position: PositionData, leg: LegResult):
        self.failure_events.append({
            "step": self.current_step,
            "event": f"{leg.operation}_failed",
            "position_id": position.position_id,
            "asset": leg.asset,
            "amount": leg.requested,
            "reason": leg.error.reason if leg.error else "",
        })
        print(f"❌ {leg.operation.capitalize()} of {leg.requested} asset{leg.asset} failed for "
              f"{_short(position.position_id)}: {leg.error.reason if leg.error else 'unknown'}")


def _short(position_id: str) -> str:
    return position_id[:10]
