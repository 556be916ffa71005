#!/usr/bin/env python3
"""
Scenario Runner, Metrics, Charts and Results Storage Tests

Short runs only; each test builds its own scenario config.
"""

import sys
import os
import json
import pytest

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from range_orchestrator.analysis.charts import RotationChartGenerator
from range_orchestrator.analysis.metrics import OrchestratorMetricsCalculator, events_dataframe
from range_orchestrator.analysis.results_manager import ResultsManager, RunMetadata
from range_orchestrator.core.position import PositionState
from range_orchestrator.engine.config import (
    OrchestratorConfig, ScenarioConfig, ScenarioPresets, create_default_config
)
from range_orchestrator.main import main
from range_orchestrator.simulation.scenario import RangeScenarioRunner, generate_tick_path


def small_config(steps: int = 40, failure_rate: float = 0.0) -> ScenarioConfig:
    config = ScenarioConfig()
    config.simulation_steps = steps
    config.venue_failure_rate = failure_rate
    config.recovery_interval = 5
    config.tick_volatility = 60.0
    return config


class TestTickPath:

    def test_path_is_reproducible(self):
        assert generate_tick_path(30, 150, 25.0, seed=4) == generate_tick_path(30, 150, 25.0, seed=4)

    def test_path_is_plain_ints(self):
        path = generate_tick_path(10, 0, 5.0, seed=1)
        assert len(path) == 10
        assert all(type(tick) is int for tick in path)


class TestScenarioRunner:

    def setup_method(self):
        self.results = RangeScenarioRunner(small_config()).run_simulation()

    def test_histories_cover_every_step(self):
        assert self.results["steps"] == 40
        assert len(self.results["tick_history"]) == 40
        assert len(self.results["metrics_history"]) == 40

    def test_metrics_rows_have_state_counts(self):
        row = self.results["metrics_history"][0]
        for state in PositionState:
            assert f"positions_{state.value}" in row
        assert row["num_positions"] == 3

    def test_reliable_venue_keeps_accounting_valid(self):
        assert self.results["failure_events"] == []
        assert self.results["stuck_positions"] == []
        for report in self.results["venue_accounting"].values():
            assert report["valid"]

    def test_unwind_deletes_every_position(self):
        unwound = self.results["unwind_results"]
        assert len(unwound) == 3
        assert all(entry["deleted"] for entry in unwound)

    def test_metrics_summary(self):
        calculator = OrchestratorMetricsCalculator(self.results)
        summary = calculator.summarize()
        assert set(summary) == {"allocation", "activity", "failures", "yield", "range"}
        assert summary["activity"]["positions_created"] == 3
        assert summary["failures"]["venue_failures"] == 0
        assert 0.0 <= summary["allocation"]["avg_yield_share"] <= 1.0

        key_metrics = calculator.key_metrics()
        assert key_metrics["venue_accounting_valid"]

    def test_charts_written(self, tmp_path):
        paths = RotationChartGenerator().generate_charts(self.results, tmp_path / "charts")
        names = sorted(p.name for p in paths)
        assert names == ["allocation.png", "position_states.png", "tick_ranges.png"]
        assert all(p.exists() for p in paths)


class TestFlakyVenueScenario:

    def test_failures_never_break_the_run(self):
        config = small_config(steps=60, failure_rate=0.25)
        runner = RangeScenarioRunner(config)
        results = runner.run_simulation()

        assert len(results["metrics_history"]) == 60
        for event in results["failure_events"]:
            assert event["event"] in ("deposit_failed", "withdraw_failed")
        for position_id in runner.engine.get_stuck_positions():
            assert runner.engine.get_position(position_id).state == PositionState.STUCK

        OrchestratorMetricsCalculator(results).key_metrics()


class TestConfiguration:

    def test_presets(self):
        names = [p["name"] for p in ScenarioPresets.get_all_presets()]
        assert "Flaky_Venue" in names
        assert ScenarioPresets.get_preset_by_name("missing") is None

        config = ScenarioPresets.apply(ScenarioConfig(), ScenarioPresets.FLAKY_VENUE)
        assert config.scenario_name == "Flaky_Venue"
        assert config.venue_failure_rate == 0.10

    def test_orchestrator_config_validation(self):
        with pytest.raises(ValueError):
            OrchestratorConfig(default_reserve_percent=60)
        with pytest.raises(ValueError):
            OrchestratorConfig(operators=["a", "a"])
        with pytest.raises(ValueError):
            OrchestratorConfig(min_reserve_percent=40, max_reserve_percent=30)
        assert OrchestratorConfig(operators=["ops"]).is_operator("ops")
        assert not OrchestratorConfig().is_operator(None)
        assert create_default_config(min_liquidity=5).min_liquidity == 5

    def test_empty_events_frame(self):
        assert events_dataframe([]).empty


class TestResultsManager:

    def setup_method(self):
        self.results = RangeScenarioRunner(small_config(steps=10)).run_simulation()

    def test_save_and_load(self, tmp_path):
        manager = ResultsManager(str(tmp_path))
        run_dir = manager.create_run_directory("Range_Yield_Rotation")
        assert run_dir.name.startswith("run_001_")
        assert (run_dir / "charts").is_dir()

        metadata = RunMetadata(run_dir.name, "Range_Yield_Rotation", "2024-01-01T00:00:00", {"steps": 10},
                               self.results["execution_time"])
        manager.save_results(run_dir, self.results, metadata)
        key_metrics = OrchestratorMetricsCalculator(self.results).key_metrics()
        summary = manager.save_summary_report(run_dir, metadata, key_metrics)

        loaded = manager.load_results(run_dir)
        assert loaded["steps"] == 10
        assert set(loaded["venue_accounting"]) == {"0", "1"}
        assert loaded["final_positions"][0]["state"] in [s.value for s in PositionState]
        assert manager.load_metadata(run_dir).scenario_name == "Range_Yield_Rotation"
        assert "Key Metrics" in summary.read_text()

        runs = manager.list_scenario_runs("Range_Yield_Rotation")
        assert [r["run_id"] for r in runs] == [run_dir.name]

    def test_run_numbers_increment(self, tmp_path):
        manager = ResultsManager(str(tmp_path))
        first = manager.create_run_directory("S")
        (tmp_path / "S" / "run_007_old").mkdir()
        second = manager.create_run_directory("S")
        assert first.name.startswith("run_001_")
        assert second.name.startswith("run_008_")

    def test_results_are_json_serializable(self, tmp_path):
        manager = ResultsManager(str(tmp_path))
        json.dumps(manager._make_serializable(self.results))


class TestCommandLine:

    def test_list_presets(self, capsys):
        assert main(["--list-presets"]) == 0
        assert "Calm_Market" in capsys.readouterr().out

    def test_unknown_preset(self):
        assert main(["--preset", "Nope", "--no-save"]) == 1

    def test_run_saves_results(self, tmp_path):
        assert main(["--steps", "15", "--seed", "3", "--output", str(tmp_path)]) == 0
        run_dirs = list((tmp_path / "Range_Yield_Rotation").iterdir())
        assert len(run_dirs) == 1
        assert (run_dirs[0] / "results.json").exists()
        assert (run_dirs[0] / "summary.md").exists()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
