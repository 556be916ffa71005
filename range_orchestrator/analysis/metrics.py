#!/usr/bin/env python3
"""
Rotation Metrics

Summary statistics for a range scenario run: how long capital spent with the
venue, how often funds moved, how often the venue failed, and how much yield
the rotation earned.
"""

from typing import Dict, List

import numpy as np
import pandas as pd


def events_dataframe(events: List[Dict]) -> pd.DataFrame:
    """Turn an engine event history into a DataFrame (empty frame for no events)"""
    if not events:
        return pd.DataFrame(columns=["step", "event", "position_id"])
    return pd.DataFrame(events)


class OrchestratorMetricsCalculator:
    """Scenario summary metrics calculator"""

    def __init__(self, results: Dict):
        self.results = results
        self.metrics_df = pd.DataFrame(results.get("metrics_history", []))
        self.events_df = events_dataframe(results.get("rebalancing_events", []))
        self.failures_df = events_dataframe(results.get("failure_events", []))

    def calculate_allocation_metrics(self) -> Dict[str, float]:
        """Share of capital held with the venue over the run"""
        df = self.metrics_df
        if df.empty:
            return {"avg_yield_share": 0.0, "max_yield_share": 0.0, "time_in_yield_share": 0.0}

        total_yield = df["total_yield0"] + df["total_yield1"]
        total_capital = total_yield + df["total_reserve0"] + df["total_reserve1"]
        yield_share = (total_yield / total_capital.replace(0, np.nan)).fillna(0.0).to_numpy()

        return {
            "avg_yield_share": float(np.mean(yield_share)),
            "max_yield_share": float(np.max(yield_share)),
            "time_in_yield_share": float(np.mean(total_yield > 0)),
        }

    def calculate_activity_metrics(self) -> Dict[str, int]:
        """Counts of fund movements and state transitions"""
        if self.events_df.empty:
            counts = {}
        else:
            counts = self.events_df["event"].value_counts().to_dict()

        return {
            "deposits": int(counts.get("deposited_to_yield", 0)),
            "withdrawals": int(counts.get("withdrawn_from_yield", 0)),
            "partial_deposits": int(counts.get("partial_deposit", 0)),
            "stuck_incidents": int(counts.get("position_stuck", 0)),
            "recoveries": int(counts.get("position_recovered", 0)),
            "positions_created": int(counts.get("position_created", 0)),
            "positions_deleted": int(counts.get("position_deleted", 0)),
        }

    def calculate_failure_metrics(self) -> Dict[str, float]:
        df = self.failures_df
        if df.empty:
            return {"venue_failures": 0, "deposit_failures": 0, "withdraw_failures": 0,
                    "max_stuck_worklist": 0}

        by_event = df["event"].value_counts().to_dict()
        max_worklist = int(self.metrics_df["stuck_worklist_size"].max()) if not self.metrics_df.empty else 0
        return {
            "venue_failures": int(len(df)),
            "deposit_failures": int(by_event.get("deposit_failed", 0)),
            "withdraw_failures": int(by_event.get("withdraw_failed", 0)),
            "max_stuck_worklist": max_worklist,
        }

    def calculate_yield_metrics(self) -> Dict[str, float]:
        """Yield accrued on venue deposits still outstanding at the end of the run"""
        venue = self.results.get("venue_accounting", {})
        accrued = {asset: report.get("accrued_yield", 0) for asset, report in venue.items()}
        return {
            "accrued_yield_asset0": float(accrued.get(0, 0)),
            "accrued_yield_asset1": float(accrued.get(1, 0)),
            "venue_accounting_valid": bool(all(r.get("valid", True) for r in venue.values())),
        }

    def calculate_range_metrics(self) -> Dict[str, float]:
        ticks = np.array(self.results.get("tick_history", []), dtype=float)
        if ticks.size == 0:
            return {"tick_min": 0.0, "tick_max": 0.0, "tick_std": 0.0}
        return {
            "tick_min": float(ticks.min()),
            "tick_max": float(ticks.max()),
            "tick_std": float(ticks.std()),
        }

    def summarize(self) -> Dict[str, Dict]:
        return {
            "allocation": self.calculate_allocation_metrics(),
            "activity": self.calculate_activity_metrics(),
            "failures": self.calculate_failure_metrics(),
            "yield": self.calculate_yield_metrics(),
            "range": self.calculate_range_metrics(),
        }

    def key_metrics(self) -> Dict[str, float]:
        """Flattened summary for reports"""
        flat = {}
        for group in self.summarize().values():
            flat.update(group)
        return flat
