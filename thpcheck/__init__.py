"""
Transparent huge page usage verification for pre-touched Java heaps.

Launches a JVM that pre-touches its heap with MADV_POPULATE_WRITE, then
checks the heap's AnonHugePages in the captured smaps dump.
"""

from .smaps import (
    SmapsAnalyzer,
    Verdict,
    MemoryRegion,
    AnalysisError,
    HeapBaseNotFound,
    InsufficientHugePageUsage,
)
from .launcher import ChildLauncher, LaunchError, check_host
from .constants import (
    STATUS_OK,
    STATUS_WARN,
    STATUS_ERROR,
    STATUS_INFO,
    STATUS_SKIP,
    EXIT_SUCCESS,
    EXIT_FAILURE,
    EXIT_INVALID_USAGE
)

__all__ = [
    'SmapsAnalyzer',
    'Verdict',
    'MemoryRegion',
    'AnalysisError',
    'HeapBaseNotFound',
    'InsufficientHugePageUsage',
    'ChildLauncher',
    'LaunchError',
    'check_host',
    'STATUS_OK',
    'STATUS_WARN',
    'STATUS_ERROR',
    'STATUS_INFO',
    'STATUS_SKIP',
    'EXIT_SUCCESS',
    'EXIT_FAILURE',
    'EXIT_INVALID_USAGE'
]
