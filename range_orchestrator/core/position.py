#!/usr/bin/env python3
"""
Position Data Model and Ledger

Each position is a (pool, tick range) pair whose capital is split between the
AMM reserve and principal deposited with the yield venue. The ledger is the
single store of position records keyed by a deterministic position id.
"""

import hashlib
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from .errors import PositionNotFound, InvalidReservePercent
from .ticks import validate_tick_range

DEFAULT_RESERVE_PERCENT = 20
MIN_RESERVE_PERCENT = 10
MAX_RESERVE_PERCENT = 50


class PositionState(Enum):
    """Where a position's capital currently lives"""
    IN_RANGE = "in_range"                            # all capital in the AMM reserve
    IN_YIELD = "in_yield"                            # surplus deposited with the venue
    PARTIALLY_REBALANCED = "partially_rebalanced"    # only one asset's deposit landed
    STUCK = "stuck"                                  # a venue withdrawal failed


# States whose yield balances must be pulled back before in-range trading
WITHDRAWABLE_STATES = (PositionState.IN_YIELD, PositionState.PARTIALLY_REBALANCED, PositionState.STUCK)


def compute_position_id(pool_id: str, tick_lower: int, tick_upper: int) -> str:
    """
    Derive the stable position id for a (pool, range) pair

    Identical ranges on the same pool always resolve to the same id regardless
    of who contributes the liquidity.
    """
    key = f"{pool_id}:{tick_lower}:{tick_upper}".encode("utf-8")
    return "0x" + hashlib.sha256(key).hexdigest()


def resolve_reserve_percent(percent: int, default: int = DEFAULT_RESERVE_PERCENT,
                            minimum: int = MIN_RESERVE_PERCENT,
                            maximum: int = MAX_RESERVE_PERCENT) -> int:
    """Treat 0 as unset and enforce the [minimum, maximum] bounds on anything else"""
    if percent == 0:
        return default
    if not isinstance(percent, int) or isinstance(percent, bool):
        raise InvalidReservePercent(f"Reserve percent must be an integer, got {percent!r}")
    if percent < minimum or percent > maximum:
        raise InvalidReservePercent(
            f"Reserve percent {percent} outside allowed range [{minimum}, {maximum}]"
        )
    return percent


@dataclass
class PositionData:
    """Ledger record for a single position"""
    position_id: str
    pool_id: str
    tick_lower: int
    tick_upper: int
    owner: Optional[str] = None

    reserve_amount0: int = 0
    reserve_amount1: int = 0
    yield_amount0: int = 0
    yield_amount1: int = 0

    total_liquidity: int = 0  # denormalized, only used for dust filtering
    reserve_percent: int = DEFAULT_RESERVE_PERCENT
    state: PositionState = PositionState.IN_RANGE
    paused: bool = False

    def __post_init__(self):
        validate_tick_range(self.tick_lower, self.tick_upper)
        self.reserve_percent = resolve_reserve_percent(self.reserve_percent)
        self.refresh_total_liquidity()

    # Per-asset accessors so the engine can loop over asset indices
    def reserve(self, asset: int) -> int:
        return self.reserve_amount0 if asset == 0 else self.reserve_amount1

    def yield_amount(self, asset: int) -> int:
        return self.yield_amount0 if asset == 0 else self.yield_amount1

    def set_reserve(self, asset: int, amount: int):
        if amount < 0:
            raise ValueError(f"Reserve for asset{asset} cannot be negative: {amount}")
        if asset == 0:
            self.reserve_amount0 = amount
        else:
            self.reserve_amount1 = amount

    def set_yield_amount(self, asset: int, amount: int):
        if amount < 0:
            raise ValueError(f"Yield balance for asset{asset} cannot be negative: {amount}")
        if asset == 0:
            self.yield_amount0 = amount
        else:
            self.yield_amount1 = amount

    def refresh_total_liquidity(self) -> int:
        self.total_liquidity = (self.reserve_amount0 + self.reserve_amount1 +
                                self.yield_amount0 + self.yield_amount1)
        return self.total_liquidity

    @property
    def reserve_amounts(self) -> Tuple[int, int]:
        return self.reserve_amount0, self.reserve_amount1

    @property
    def yield_amounts(self) -> Tuple[int, int]:
        return self.yield_amount0, self.yield_amount1

    @property
    def total_amounts(self) -> Tuple[int, int]:
        """Total holding per asset: reserve plus venue principal"""
        return (self.reserve_amount0 + self.yield_amount0,
                self.reserve_amount1 + self.yield_amount1)

    @property
    def has_yield_balance(self) -> bool:
        return self.yield_amount0 > 0 or self.yield_amount1 > 0

    @property
    def is_empty(self) -> bool:
        return self.total_amounts == (0, 0)

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["state"] = self.state.value
        return data


class PositionLedger:
    """Durable store of PositionData records keyed by position id"""

    def __init__(self):
        self._positions: Dict[str, PositionData] = {}

    def create(self, pool_id: str, tick_lower: int, tick_upper: int,
               owner: Optional[str] = None, amount0: int = 0, amount1: int = 0,
               reserve_percent: int = 0) -> PositionData:
        """Create a new IN_RANGE position holding the contributed amounts in reserve"""
        position_id = compute_position_id(pool_id, tick_lower, tick_upper)
        if position_id in self._positions:
            raise ValueError(f"Position {position_id} already exists")
        if amount0 < 0 or amount1 < 0:
            raise ValueError(f"Contribution amounts cannot be negative: ({amount0}, {amount1})")
        reserve_percent = resolve_reserve_percent(reserve_percent)

        position = PositionData(
            position_id=position_id,
            pool_id=pool_id,
            tick_lower=tick_lower,
            tick_upper=tick_upper,
            owner=owner,
            reserve_amount0=amount0,
            reserve_amount1=amount1,
            reserve_percent=reserve_percent,
        )
        self._positions[position_id] = position
        return position

    def get(self, position_id: str) -> PositionData:
        position = self._positions.get(position_id)
        if position is None:
            raise PositionNotFound(position_id)
        return position

    def find(self, position_id: str) -> Optional[PositionData]:
        return self._positions.get(position_id)

    def save(self, position: PositionData) -> PositionData:
        """Commit a mutated record, keeping the denormalized total in step"""
        if position.position_id not in self._positions:
            raise PositionNotFound(position.position_id)
        position.refresh_total_liquidity()
        self._positions[position.position_id] = position
        return position

    def delete(self, position_id: str) -> PositionData:
        position = self._positions.pop(position_id, None)
        if position is None:
            raise PositionNotFound(position_id)
        return position

    def exists(self, position_id: str) -> bool:
        return position_id in self._positions

    def __contains__(self, position_id: str) -> bool:
        return position_id in self._positions

    def __len__(self) -> int:
        return len(self._positions)

    def __iter__(self) -> Iterator[PositionData]:
        return iter(list(self._positions.values()))

    def snapshot(self) -> List[Dict]:
        return [p.to_dict() for p in self._positions.values()]
