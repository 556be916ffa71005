"""Rebalancing engine and configuration"""

from .config import OrchestratorConfig, ScenarioConfig, ScenarioPresets
from .rebalancing_engine import RebalancingEngine
from .results import LegResult, RebalanceResult, RecoveryReport

__all__ = ["OrchestratorConfig", "ScenarioConfig", "ScenarioPresets", "RebalancingEngine",
           "LegResult", "RebalanceResult", "RecoveryReport"]
