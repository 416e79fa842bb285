"""
Vmstat collector for THP fault tracking.

Monitors /proc/vmstat deltas across the child JVM run.
"""

from typing import Dict, Any, Optional


class VmstatCollector:
    """
    Track THP allocation statistics from /proc/vmstat.

    Captures before/after snapshots to calculate deltas during the run.
    """

    METRICS = [
        'pgfault',             # Total page faults
        'thp_fault_alloc',     # Transparent hugepage allocations on fault
        'thp_fault_fallback',  # THP allocation fallbacks
        'thp_collapse_alloc',  # khugepaged collapses
    ]

    def __init__(self, vmstat_path: str = '/proc/vmstat'):
        """Initialize collector with no baseline."""
        self.vmstat_path = vmstat_path
        self.start_stats: Optional[Dict[str, int]] = None

    def _snapshot(self) -> Dict[str, int]:
        """
        Read the tracked counters from vmstat.

        Returns:
            Counter values keyed by name; counters the kernel lacks are absent
        """
        counters = {}
        try:
            with open(self.vmstat_path) as f:
                for line in f:
                    name, _, value = line.strip().partition(" ")
                    if name in self.METRICS and value.isascii() and value.isdigit():
                        counters[name] = int(value)
        except FileNotFoundError:
            pass
        return counters

    def start(self):
        """Capture baseline vmstat snapshot before the child starts."""
        self.start_stats = self._snapshot()

    def stop(self) -> Dict[str, Any]:
        """
        Calculate vmstat deltas since start.

        Returns:
            Dictionary containing:
            - vmstat: Dictionary of <metric>_delta values
        """
        if self.start_stats is None:
            return {}

        end_stats = self._snapshot()
        deltas = {}

        for key in self.METRICS:
            if key in self.start_stats and key in end_stats:
                deltas[f"{key}_delta"] = end_stats[key] - self.start_stats[key]

        return {"vmstat": deltas} if deltas else {}
