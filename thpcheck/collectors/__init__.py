"""
Host metrics collectors for THP verification.

Available collectors:
- ThpCollector: THP policy via sysfs and usage via /proc/meminfo
- VmstatCollector: THP fault tracking via /proc/vmstat
"""

from .thp import ThpCollector
from .vmstat import VmstatCollector

__all__ = [
    'ThpCollector',
    'VmstatCollector'
]
