"""Scenario runner"""

from .scenario import RangeScenarioRunner, generate_tick_path

__all__ = ["RangeScenarioRunner", "generate_tick_path"]
