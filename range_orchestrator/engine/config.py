#!/usr/bin/env python3
"""
Orchestrator and scenario configuration

The engine configuration is a validated Pydantic schema; scenario parameters
are plain attribute classes that the scenario runner reads directly.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..core.position import DEFAULT_RESERVE_PERCENT, MIN_RESERVE_PERCENT, MAX_RESERVE_PERCENT


class OrchestratorConfig(BaseModel):
    """Rebalancing engine parameters"""
    default_reserve_percent: int = Field(
        default=DEFAULT_RESERVE_PERCENT, ge=MIN_RESERVE_PERCENT, le=MAX_RESERVE_PERCENT,
        description="Share of capital kept in the AMM reserve while out of range"
    )
    min_reserve_percent: int = Field(
        ge=MIN_RESERVE_PERCENT, le=MAX_RESERVE_PERCENT, default=MIN_RESERVE_PERCENT,
        description="Lowest per-position reserve percent; may only narrow the global bounds"
    )
    max_reserve_percent: int = Field(
        ge=MIN_RESERVE_PERCENT, le=MAX_RESERVE_PERCENT, default=MAX_RESERVE_PERCENT,
        description="Highest per-position reserve percent; may only narrow the global bounds"
    )
    min_liquidity: int = Field(ge=0, default=100, description="Positions below this total are treated as dust")
    post_withdrawal_deposit_percent: int = Field(
        ge=0, le=100, default=80,
        description="Share of the remaining reserve re-deposited after a partial withdrawal"
    )
    max_allowed_discrepancy: int = Field(ge=0, default=10, description="Accounting tolerance in base units")
    venue_holder: str = Field(default="range_orchestrator", description="Account that holds venue deposits")
    operators: List[str] = Field(default_factory=lambda: ["operator"], description="Accounts allowed to pause/resume")
    verbose: bool = Field(default=False, description="Print routine fund movements")

    @field_validator("operators")
    @classmethod
    def validate_operators(cls, v):
        """Operator ids must be non-empty and unique"""
        if any(not op for op in v):
            raise ValueError("Operator ids cannot be empty")
        if len(v) != len(set(v)):
            raise ValueError("Operator ids must be unique")
        return v

    @model_validator(mode="after")
    def validate_reserve_bounds(self):
        """Default reserve percent must sit inside the configured bounds"""
        if self.min_reserve_percent > self.max_reserve_percent:
            raise ValueError("min_reserve_percent cannot exceed max_reserve_percent")
        if not self.min_reserve_percent <= self.default_reserve_percent <= self.max_reserve_percent:
            raise ValueError(
                f"default_reserve_percent {self.default_reserve_percent} outside "
                f"[{self.min_reserve_percent}, {self.max_reserve_percent}]"
            )
        return self

    def is_operator(self, caller: Optional[str]) -> bool:
        return caller is not None and caller in self.operators


def create_default_config(**overrides) -> OrchestratorConfig:
    """Create a default engine configuration for testing"""
    return OrchestratorConfig(**overrides)


class ScenarioConfig:
    """Simple scenario configuration for the range scenario runner"""

    def __init__(self):
        self.scenario_name = "Range_Yield_Rotation"

        # Simulation parameters
        self.simulation_steps = 500
        self.minutes_per_step = 60
        self.random_seed: Optional[int] = 42

        # Tick path (random walk with drift)
        self.initial_tick = 150
        self.tick_volatility = 25.0
        self.tick_drift = 0.0

        # Trade flow per step, as a share of each position's reserve
        self.trade_flow_fraction = 0.02

        # Yield venue
        self.venue_apr = 0.05
        self.venue_failure_rate = 0.0

        # Recovery sweep cadence in steps
        self.recovery_interval = 24

        # Withdraw every position in full after the last step
        self.unwind_at_end = True

        # Pool and positions
        self.pool_id = "POOL:ASSET0/ASSET1"
        self.positions: List[Dict] = [
            {"owner": "lp_narrow", "tick_lower": 100, "tick_upper": 200, "amount0": 100_000, "amount1": 100_000},
            {"owner": "lp_wide", "tick_lower": 0, "tick_upper": 300, "amount0": 250_000, "amount1": 250_000},
            {"owner": "lp_upper", "tick_lower": 200, "tick_upper": 400, "amount0": 50_000, "amount1": 50_000},
        ]

        self.orchestrator = OrchestratorConfig()


class ScenarioPresets:
    """Named scenario variants"""

    CALM_MARKET = {
        "name": "Calm_Market",
        "description": "Low volatility, reliable venue",
        "tick_volatility": 10.0,
        "venue_failure_rate": 0.0,
    }

    VOLATILE_MARKET = {
        "name": "Volatile_Market",
        "description": "Frequent range crossings",
        "tick_volatility": 60.0,
        "venue_failure_rate": 0.0,
    }

    FLAKY_VENUE = {
        "name": "Flaky_Venue",
        "description": "Frequent crossings with 10% venue call failures",
        "tick_volatility": 60.0,
        "venue_failure_rate": 0.10,
    }

    @classmethod
    def get_all_presets(cls) -> List[dict]:
        return [cls.CALM_MARKET, cls.VOLATILE_MARKET, cls.FLAKY_VENUE]

    @classmethod
    def get_preset_by_name(cls, name: str) -> Optional[dict]:
        for preset in cls.get_all_presets():
            if preset["name"] == name:
                return preset
        return None

    @classmethod
    def apply(cls, config: ScenarioConfig, preset: dict) -> ScenarioConfig:
        config.scenario_name = preset["name"]
        for key, value in preset.items():
            if key not in ("name", "description") and hasattr(config, key):
                setattr(config, key, value)
        return config
