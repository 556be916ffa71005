#!/usr/bin/env python3
"""
Range Orchestrator - Main Entry Point

Runs a range/yield rotation scenario against the simulated lending venue and
saves results, a markdown summary and charts under results/.
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict

from .analysis.charts import RotationChartGenerator
from .analysis.metrics import OrchestratorMetricsCalculator
from .analysis.results_manager import ResultsManager, RunMetadata
from .engine.config import ScenarioConfig, ScenarioPresets
from .simulation.scenario import RangeScenarioRunner


def main(argv=None) -> int:
    """Main entry point with command-line interface"""

    parser = argparse.ArgumentParser(
        description="Range Orchestrator Scenario Runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m range_orchestrator.main                          # Default rotation scenario
  python -m range_orchestrator.main --preset Flaky_Venue     # Named preset
  python -m range_orchestrator.main --steps 200 --failure-rate 0.2 --charts
  python -m range_orchestrator.main --list-presets
        """
    )

    parser.add_argument('--preset', type=str,
                        help='Run a named scenario preset')
    parser.add_argument('--list-presets', action='store_true',
                        help='List available scenario presets')
    parser.add_argument('--steps', type=int,
                        help='Number of simulation steps (default: 500)')
    parser.add_argument('--seed', type=int,
                        help='Random seed for the tick path and venue failures')
    parser.add_argument('--failure-rate', type=float,
                        help='Probability that any single venue call fails')
    parser.add_argument('--apr', type=float,
                        help='Venue supply APR (default: 0.05)')
    parser.add_argument('--charts', action='store_true',
                        help='Generate charts for the run')
    parser.add_argument('--output', type=str, default="results",
                        help='Base results directory (default: results)')
    parser.add_argument('--no-save', action='store_true',
                        help='Print the summary without saving results')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Print every fund movement')

    args = parser.parse_args(argv)

    if args.list_presets:
        list_presets()
        return 0

    try:
        config = create_scenario_config(args)
    except ValueError as e:
        print(f"Error: {str(e)}")
        print("\nUse --list-presets to see available presets")
        return 1

    print(f"Running Scenario: {config.scenario_name}")
    print("=" * 60)

    try:
        runner = RangeScenarioRunner(config)
        results = runner.run_simulation()
        key_metrics = OrchestratorMetricsCalculator(results).key_metrics()
        display_key_metrics(key_metrics)

        if not args.no_save:
            save_run(config, results, key_metrics, args)
        return 0

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 1
    except Exception as e:
        print(f"Error: {str(e)}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


def create_scenario_config(args) -> ScenarioConfig:
    """Create scenario configuration from command-line arguments"""

    config = ScenarioConfig()

    if args.preset:
        preset = ScenarioPresets.get_preset_by_name(args.preset)
        if preset is None:
            raise ValueError(f"Unknown preset: {args.preset}")
        ScenarioPresets.apply(config, preset)

    # Apply command-line overrides
    if args.steps is not None:
        config.simulation_steps = args.steps
    if args.seed is not None:
        config.random_seed = args.seed
    if args.failure_rate is not None:
        config.venue_failure_rate = args.failure_rate
    if args.apr is not None:
        config.venue_apr = args.apr
    config.orchestrator = config.orchestrator.model_copy(update={"verbose": args.verbose})

    return config


def list_presets():
    print("Available Scenario Presets:")
    print("-" * 40)
    for i, preset in enumerate(ScenarioPresets.get_all_presets(), 1):
        print(f"{i:2d}. {preset['name']}")
        print(f"    {preset['description']}")
        print()


def display_key_metrics(key_metrics: Dict):
    print("\nKey Metrics:")
    print("-" * 40)
    for key, value in key_metrics.items():
        if isinstance(value, float) and key.endswith("_share"):
            print(f"  {key}: {value:.1%}")
        elif isinstance(value, float):
            print(f"  {key}: {value:,.2f}")
        else:
            print(f"  {key}: {value}")


def save_run(config: ScenarioConfig, results: Dict, key_metrics: Dict, args) -> Path:
    manager = ResultsManager(args.output)
    run_dir = manager.create_run_directory(config.scenario_name)

    metadata = RunMetadata(
        run_id=run_dir.name,
        scenario_name=config.scenario_name,
        timestamp=datetime.now().isoformat(),
        parameters={
            "steps": results["steps"],
            "random_seed": config.random_seed,
            "tick_volatility": config.tick_volatility,
            "venue_apr": config.venue_apr,
            "venue_failure_rate": config.venue_failure_rate,
            "orchestrator": config.orchestrator.model_dump(),
        },
        execution_time=results["execution_time"],
    )

    manager.save_results(run_dir, {**results, "key_metrics": key_metrics}, metadata)
    manager.save_summary_report(run_dir, metadata, key_metrics)

    if args.charts:
        RotationChartGenerator().generate_charts(results, run_dir / "charts")

    print(f"\n✅ Results saved to {run_dir}")
    return run_dir


if __name__ == "__main__":
    sys.exit(main())
