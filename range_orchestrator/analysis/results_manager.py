#!/usr/bin/env python3
"""
Results Management

Stores each scenario run under results/<scenario>/run_NNN_<timestamp>/ with the
raw results, run metadata, a markdown summary and a charts/ folder.
"""

import json
from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


@dataclass
class RunMetadata:
    """Metadata for a single scenario run"""
    run_id: str
    scenario_name: str
    timestamp: str
    parameters: Dict[str, Any]
    execution_time: float
    status: str = "completed"


class ResultsManager:
    """Handles results storage and sequential run numbering"""

    def __init__(self, base_results_dir: str = "results"):
        self.base_results_dir = Path(base_results_dir)
        self.base_results_dir.mkdir(parents=True, exist_ok=True)

    def create_run_directory(self, scenario_name: str) -> Path:
        scenario_dir = self.base_results_dir / scenario_name
        scenario_dir.mkdir(exist_ok=True)

        run_number = self._get_next_run_number(scenario_dir)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

        run_dir = scenario_dir / f"run_{run_number:03d}_{timestamp}"
        run_dir.mkdir(exist_ok=True)
        (run_dir / "charts").mkdir(exist_ok=True)
        return run_dir

    def _get_next_run_number(self, scenario_dir: Path) -> int:
        run_numbers = []
        for run_dir in scenario_dir.iterdir():
            if not run_dir.is_dir() or not run_dir.name.startswith("run_"):
                continue
            try:
                run_numbers.append(int(run_dir.name.split("_")[1]))
            except (ValueError, IndexError):
                continue
        return max(run_numbers) + 1 if run_numbers else 1

    def save_results(self, run_dir: Path, results: Dict[str, Any], metadata: RunMetadata) -> Path:
        results_file = run_dir / "results.json"
        with open(results_file, 'w') as f:
            json.dump(self._make_serializable(results), f, indent=2)

        with open(run_dir / "metadata.json", 'w') as f:
            json.dump(self._make_serializable(asdict(metadata)), f, indent=2)

        return results_file

    def save_summary_report(self, run_dir: Path, metadata: RunMetadata, key_metrics: Dict[str, Any]) -> Path:
        summary_file = run_dir / "summary.md"
        with open(summary_file, 'w') as f:
            f.write(self._generate_markdown_summary(metadata, key_metrics))
        return summary_file

    def _generate_markdown_summary(self, metadata: RunMetadata, key_metrics: Dict[str, Any]) -> str:
        md_content = ["# Scenario Run Summary\n", "## Run Information"]
        md_content.append(f"- **Scenario**: {metadata.scenario_name}")
        md_content.append(f"- **Run**: {metadata.run_id}")
        md_content.append(f"- **Timestamp**: {metadata.timestamp}")
        md_content.append(f"- **Execution Time**: {metadata.execution_time:.2f}s")
        md_content.append("")

        md_content.append("## Key Metrics")
        for key, value in key_metrics.items():
            label = key.replace('_', ' ').title()
            if isinstance(value, bool):
                md_content.append(f"- **{label}**: {'yes' if value else 'no'}")
            elif isinstance(value, float) and key.endswith("_share"):
                md_content.append(f"- **{label}**: {value:.2%}")
            elif isinstance(value, float):
                md_content.append(f"- **{label}**: {value:,.2f}")
            else:
                md_content.append(f"- **{label}**: {value}")
        md_content.append("")
        return "\n".join(md_content)

    def list_scenario_runs(self, scenario_name: str) -> List[Dict[str, Any]]:
        scenario_dir = self.base_results_dir / scenario_name
        if not scenario_dir.exists():
            return []

        runs = []
        for run_dir in scenario_dir.iterdir():
            if not run_dir.is_dir() or not run_dir.name.startswith("run_"):
                continue
            metadata = self.load_metadata(run_dir)
            if metadata is not None:
                runs.append({"path": str(run_dir), **asdict(metadata)})
            else:
                runs.append({"run_id": run_dir.name, "path": str(run_dir), "scenario_name": scenario_name})

        runs.sort(key=lambda x: x["run_id"])
        return runs

    def load_results(self, run_path: Path) -> Optional[Dict[str, Any]]:
        results_file = run_path / "results.json"
        if not results_file.exists():
            return None
        try:
            with open(results_file, 'r') as f:
                return json.load(f)
        except json.JSONDecodeError:
            return None

    def load_metadata(self, run_path: Path) -> Optional[RunMetadata]:
        metadata_file = run_path / "metadata.json"
        if not metadata_file.exists():
            return None
        try:
            with open(metadata_file, 'r') as f:
                return RunMetadata(**json.load(f))
        except (json.JSONDecodeError, TypeError):
            return None

    def _make_serializable(self, obj: Any) -> Any:
        """Convert numpy values, enums and containers into JSON-friendly types"""
        if isinstance(obj, Enum):
            return obj.value
        if hasattr(obj, 'tolist'):  # numpy arrays
            return obj.tolist()
        if hasattr(obj, 'item'):  # numpy scalars
            return obj.item()
        if isinstance(obj, (set, frozenset, list, tuple)):
            return [self._make_serializable(item) for item in obj]
        if isinstance(obj, dict):
            return {str(k.value) if isinstance(k, Enum) else str(k): self._make_serializable(v)
                    for k, v in obj.items()}
        if isinstance(obj, BaseException):
            return str(obj)
        try:
            json.dumps(obj)
            return obj
        except (TypeError, ValueError):
            return str(obj)
