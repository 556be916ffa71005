#!/usr/bin/env python3
"""
Range Rotation Visualization

Charts for a scenario run:
- Pool tick over time with range bounds
- Reserve vs. venue allocation over time
- Position state counts and stuck worklist size
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns


class RotationChartGenerator:
    """Generates the visualization suite for a range scenario run"""

    def __init__(self):
        self._setup_styling()

    def _setup_styling(self):
        plt.style.use('default')
        sns.set_palette("husl")

        plt.rcParams.update({
            'figure.figsize': (14, 8),
            'font.size': 11,
            'axes.titlesize': 15,
            'axes.labelsize': 12,
            'legend.fontsize': 10,
        })

    def generate_charts(self, results: Dict[str, Any], charts_dir: Path) -> List[Path]:
        print(f"Generating rotation charts for: {results.get('scenario_name', 'scenario')}")
        charts_dir.mkdir(parents=True, exist_ok=True)

        generated = []
        for builder in (self._create_tick_chart, self._create_allocation_chart, self._create_state_chart):
            chart_path = builder(results, charts_dir)
            if chart_path:
                generated.append(chart_path)

        print(f"Generated {len(generated)} charts")
        return generated

    def _create_tick_chart(self, results: Dict, charts_dir: Path) -> Optional[Path]:
        ticks = results.get("tick_history", [])
        if not ticks:
            return None

        fig, ax = plt.subplots()
        ax.plot(range(len(ticks)), ticks, color="black", linewidth=1.2, label="Pool tick")

        palette = sns.color_palette("husl", max(1, len(results.get("final_positions", []))))
        for color, position in zip(palette, results.get("final_positions", [])):
            label = position.get("owner") or position["position_id"][:10]
            ax.axhspan(position["tick_lower"], position["tick_upper"], alpha=0.12, color=color, label=label)

        ax.set_title("Pool Tick vs. Position Ranges")
        ax.set_xlabel("Step")
        ax.set_ylabel("Tick")
        ax.legend(loc="upper left")
        ax.grid(True, alpha=0.3)

        chart_path = charts_dir / "tick_ranges.png"
        fig.savefig(chart_path, dpi=150, bbox_inches="tight")
        plt.close(fig)
        return chart_path

    def _create_allocation_chart(self, results: Dict, charts_dir: Path) -> Optional[Path]:
        df = pd.DataFrame(results.get("metrics_history", []))
        if df.empty:
            return None

        fig, axes = plt.subplots(2, 1, sharex=True)
        for asset, ax in enumerate(axes):
            ax.stackplot(
                df["step"], df[f"total_reserve{asset}"], df[f"total_yield{asset}"],
                labels=["AMM reserve", "Venue principal"], alpha=0.8
            )
            ax.plot(df["step"], df[f"venue_balance{asset}"], linestyle="--", color="black",
                    linewidth=1.0, label="Venue balance (with yield)")
            ax.set_ylabel(f"Asset {asset}")
            ax.legend(loc="upper left")
            ax.grid(True, alpha=0.3)

        axes[0].set_title("Capital Allocation: Reserve vs. Yield Venue")
        axes[-1].set_xlabel("Step")

        chart_path = charts_dir / "allocation.png"
        fig.savefig(chart_path, dpi=150, bbox_inches="tight")
        plt.close(fig)
        return chart_path

    def _create_state_chart(self, results: Dict, charts_dir: Path) -> Optional[Path]:
        df = pd.DataFrame(results.get("metrics_history", []))
        if df.empty:
            return None

        state_columns = [c for c in df.columns if c.startswith("positions_")]
        fig, ax = plt.subplots()
        for column in state_columns:
            ax.step(df["step"], df[column], where="post", label=column.replace("positions_", ""))
        ax.plot(df["step"], df["stuck_worklist_size"], color="red", linestyle=":", label="Stuck worklist")

        ax.set_title("Position States Over Time")
        ax.set_xlabel("Step")
        ax.set_ylabel("Positions")
        ax.legend(loc="upper left")
        ax.grid(True, alpha=0.3)

        chart_path = charts_dir / "position_states.png"
        fig.savefig(chart_path, dpi=150, bbox_inches="tight")
        plt.close(fig)
        return chart_path
