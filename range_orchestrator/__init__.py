"""
Range Orchestrator

Per-position liquidity orchestration for concentrated-liquidity pools: capital
sits in the AMM reserve while the pool tick is inside a position's range and
rotates into an external lending venue while it is outside.
"""

__version__ = "1.0.0"

# Core components
from .core.errors import (
    OrchestratorError, PositionNotFound, Unauthorized, InvalidReservePercent,
    InvalidTickRange, PositionBusy, YieldVenueError, VenueDepositFailed, VenueWithdrawFailed
)
from .core.position import PositionData, PositionLedger, PositionState, compute_position_id
from .core.yield_venue import YieldVenueClient, SimulatedLendingVenue

# Engine
from .engine.config import OrchestratorConfig, ScenarioConfig, ScenarioPresets
from .engine.rebalancing_engine import RebalancingEngine
from .engine.results import LegResult, RebalanceResult, RecoveryReport

# Adapters and simulation
from .adapters.pool_adapter import PoolLifecycleAdapter
from .simulation.scenario import RangeScenarioRunner

# Analysis
from .analysis.metrics import OrchestratorMetricsCalculator

__all__ = [
    # Core
    "OrchestratorError", "PositionNotFound", "Unauthorized", "InvalidReservePercent",
    "InvalidTickRange", "PositionBusy", "YieldVenueError", "VenueDepositFailed", "VenueWithdrawFailed",
    "PositionData", "PositionLedger", "PositionState", "compute_position_id",
    "YieldVenueClient", "SimulatedLendingVenue",

    # Engine
    "OrchestratorConfig", "ScenarioConfig", "ScenarioPresets",
    "RebalancingEngine", "LegResult", "RebalanceResult", "RecoveryReport",

    # Adapters and simulation
    "PoolLifecycleAdapter", "RangeScenarioRunner",

    # Analysis
    "OrchestratorMetricsCalculator",
]
