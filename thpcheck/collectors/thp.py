"""
Transparent hugepage status collector.

Reads THP policy from sysfs and anonymous hugepage usage from /proc/meminfo.
"""

import os
from typing import Dict, Any, Optional


class ThpCollector:
    """
    Collect transparent hugepage configuration.

    The active sysfs setting is the one shown in brackets,
    e.g. 'always [madvise] never' -> 'madvise'.
    """

    def __init__(self, sysfs_dir: str = "/sys/kernel/mm/transparent_hugepage",
                 meminfo_path: str = "/proc/meminfo"):
        self.sysfs_dir = sysfs_dir
        self.meminfo_path = meminfo_path

    def _read_sysfs(self, name: str) -> Optional[str]:
        try:
            with open(os.path.join(self.sysfs_dir, name), "r") as f:
                return f.read().strip()
        except (FileNotFoundError, PermissionError):
            return None

    @staticmethod
    def _active_mode(value: str) -> Optional[str]:
        start = value.find("[")
        end = value.find("]", start + 1)
        if start == -1 or end == -1:
            return None
        return value[start + 1:end]

    def get_system_info(self) -> Dict[str, Any]:
        """
        Collect THP configuration.

        Returns:
            Dictionary containing:
            - enabled: Active THP mode ('always', 'madvise' or 'never')
            - defrag: Active defrag mode
            - hpage_pmd_size_kb: PMD huge page size in KB
            - anon_huge_pages_kb: AnonHugePages currently in use
            - mem_total_kb: Total system memory
        """
        info = {}

        for name in ("enabled", "defrag"):
            value = self._read_sysfs(name)
            if value:
                mode = self._active_mode(value)
                if mode:
                    info[name] = mode

        pmd_size = self._read_sysfs("hpage_pmd_size")
        if pmd_size:
            try:
                info["hpage_pmd_size_kb"] = int(pmd_size) // 1024
            except ValueError:
                pass

        try:
            with open(self.meminfo_path, "r") as f:
                for line in f:
                    if line.startswith("AnonHugePages:"):
                        info["anon_huge_pages_kb"] = int(line.split()[1])
                    elif line.startswith("MemTotal:"):
                        info["mem_total_kb"] = int(line.split()[1])
        except (FileNotFoundError, ValueError, IndexError):
            pass

        return {"thp": info} if info else {}
