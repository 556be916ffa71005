"""Position model, tick helpers and yield venue clients"""

from .position import PositionData, PositionLedger, PositionState, compute_position_id
from .ticks import is_in_range, detect_range_crossing
from .yield_venue import YieldVenueClient, SimulatedLendingVenue

__all__ = [
    "PositionData", "PositionLedger", "PositionState", "compute_position_id",
    "is_in_range", "detect_range_crossing",
    "YieldVenueClient", "SimulatedLendingVenue",
]
