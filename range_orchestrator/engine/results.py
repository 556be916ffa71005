"""Per-asset operation outcomes returned by the rebalancing engine"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..core.errors import VenueLegError
from ..core.position import PositionState


@dataclass
class LegResult:
    """Outcome of one single-asset venue call"""
    asset: int
    operation: str          # "deposit" or "withdraw"
    requested: int
    actual: int = 0
    error: Optional[VenueLegError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RebalanceResult:
    """
    Two-phase result of a lifecycle operation

    `legs` holds one entry per asset that needed a venue call. An operation with
    no legs is a no-op and counts as a success.
    """
    position_id: str
    action: str
    state: Optional[PositionState] = None
    legs: Dict[int, LegResult] = field(default_factory=dict)
    available0: int = 0
    available1: int = 0
    skipped_reason: Optional[str] = None

    @property
    def success(self) -> bool:
        return all(leg.ok for leg in self.legs.values())

    @property
    def is_noop(self) -> bool:
        return not self.legs

    @property
    def partial(self) -> bool:
        """Some legs succeeded and some failed"""
        outcomes = [leg.ok for leg in self.legs.values()]
        return any(outcomes) and not all(outcomes)

    @property
    def failed_assets(self) -> List[int]:
        return [asset for asset, leg in self.legs.items() if not leg.ok]

    @property
    def available(self) -> Tuple[int, int]:
        return self.available0, self.available1

    def __bool__(self) -> bool:
        return self.success


@dataclass
class RecoveryReport:
    """Outcome of one stuck-position recovery sweep"""
    attempted: List[str] = field(default_factory=list)
    recovered: List[str] = field(default_factory=list)
    still_stuck: List[str] = field(default_factory=list)
    dropped: List[str] = field(default_factory=list)   # ids whose records no longer exist
    skipped: List[str] = field(default_factory=list)   # paused positions

    @property
    def success(self) -> bool:
        return not self.still_stuck

    def to_dict(self) -> Dict[str, int]:
        return {
            "attempted": len(self.attempted),
            "recovered": len(self.recovered),
            "still_stuck": len(self.still_stuck),
            "dropped": len(self.dropped),
            "skipped": len(self.skipped),
        }
