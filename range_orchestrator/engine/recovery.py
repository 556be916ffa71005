#!/usr/bin/env python3
"""
Stuck Position Worklist

Ordered set of position ids whose venue withdrawals failed. The rebalancing
engine owns one instance and is the only writer; the recovery sweep walks a
snapshot so entries can be removed while iterating.
"""

from typing import Dict, Iterator, List


class StuckPositionWorklist:
    """Insertion-ordered set of stuck position ids"""

    def __init__(self):
        self._entries: Dict[str, int] = {}  # position_id -> failure count
        self.total_added = 0
        self.total_removed = 0

    def add(self, position_id: str) -> bool:
        """Record a failure; returns True if the id was newly added"""
        if position_id in self._entries:
            self._entries[position_id] += 1
            return False
        self._entries[position_id] = 1
        self.total_added += 1
        return True

    def remove(self, position_id: str) -> bool:
        if self._entries.pop(position_id, None) is None:
            return False
        self.total_removed += 1
        return True

    def failure_count(self, position_id: str) -> int:
        return self._entries.get(position_id, 0)

    def snapshot(self) -> List[str]:
        return list(self._entries.keys())

    def __contains__(self, position_id: str) -> bool:
        return position_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())
