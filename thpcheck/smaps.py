"""
Smaps analysis for pre-touched heap THP verification.

Parses the captured output of a child JVM run (unified logging lines
interleaved with a /proc/self/smaps dump) and decides whether the heap's
address range is backed by transparent huge pages.
"""

import re
import sys
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, TextIO

from .constants import (
    HUGE_PAGE_USAGE_THRESHOLD,
    KB,
    MAX_ADDRESS,
    SCAN_WINDOW_BYTES,
)


# THP is not disabled by the OS
USE_THP_PATTERN = re.compile(r"\[info\s*\]\[pagesize\s*\].+UseTransparentHugePages=1")
# MADV_POPULATE_WRITE is supported by the kernel
USE_MADV_PATTERN = re.compile(r"\[debug\s*\]\[gc,os\s*\].+UseMadvPopulateWrite=1")
HEAP_BASE_PATTERN = re.compile(r"\sHeap:\s.+base=0x0*([0-9a-fA-F]+)")
# Start of a mapping, for example:
# 200000000-800000000 rw-p 00000000 00:00 0
MAPPING_PATTERN = re.compile(r"^([0-9a-fA-F]+)-[0-9a-fA-F]+")
THP_USAGE_PATTERN = re.compile(r"^AnonHugePages:\s+([0-9]+)\skB")


class AnalysisError(Exception):
    """Raised when the captured output does not show the expected THP usage."""
    pass


class HeapBaseNotFound(AnalysisError):
    """Raised when no heap description line carries a base address."""

    def __init__(self):
        super().__init__("Heap base was not found in smaps.")


class InsufficientHugePageUsage(AnalysisError):
    """Raised when the heap window holds fewer THP bytes than the threshold."""

    def __init__(self, total: int, threshold: int = HUGE_PAGE_USAGE_THRESHOLD):
        self.total = total
        self.threshold = threshold
        super().__init__(
            f"The usage of THP is not enough: {total} bytes in heap "
            f"(expected at least {threshold})"
        )


class Verdict(Enum):
    """Non-failing outcomes of a usage check; failures are raised."""
    PASSED = "passed"
    SKIPPED = "skipped"


@dataclass
class MemoryRegion:
    """One smaps mapping record and its AnonHugePages size in bytes."""
    start: int
    anon_huge_bytes: int = 0


def _parse_address(text: str) -> Optional[int]:
    # Wider than 64 bits is a malformed line, not an address
    value = int(text, 16)
    if value > MAX_ADDRESS:
        return None
    return value


def parse_regions(lines: List[str]) -> List[MemoryRegion]:
    """
    Split smaps lines into mapping records.

    AnonHugePages values are attributed to the most recently seen mapping
    record. Usage lines before the first mapping belong to no region.

    Args:
        lines: Captured output lines

    Returns:
        Mapping records in the order they appear
    """
    regions: List[MemoryRegion] = []
    current: Optional[MemoryRegion] = None

    for line in lines:
        match = MAPPING_PATTERN.match(line)
        if match:
            start = _parse_address(match.group(1))
            current = MemoryRegion(start) if start is not None else None
            if current is not None:
                regions.append(current)
            continue

        match = THP_USAGE_PATTERN.match(line)
        if match and current is not None:
            current.anon_huge_bytes += int(match.group(1)) * KB

    return regions


class SmapsAnalyzer:
    """
    Verify THP backing of a pre-touched heap from captured child output.

    After check_usage() the heap_base and huge_page_total attributes hold
    the values measured by the last run (None when it stopped early).
    """

    def __init__(self, window_size: int = SCAN_WINDOW_BYTES,
                 threshold: int = HUGE_PAGE_USAGE_THRESHOLD,
                 stream: Optional[TextIO] = None):
        """
        Initialize analyzer.

        Args:
            window_size: Bytes above the heap base to scan
            threshold: Minimum AnonHugePages bytes required in the window
            stream: Where the captured log is echoed (default: stdout)
        """
        self.window_size = window_size
        self.threshold = threshold
        self.stream = stream
        self.heap_base: Optional[int] = None
        self.huge_page_total: Optional[int] = None

    @staticmethod
    def features_supported(lines: List[str]) -> bool:
        """Check that THP is enabled and MADV_POPULATE_WRITE is in use."""
        use_thp = any(USE_THP_PATTERN.search(line) for line in lines)
        use_madv = any(USE_MADV_PATTERN.search(line) for line in lines)
        return use_thp and use_madv

    @staticmethod
    def find_heap_base(lines: List[str]) -> int:
        """
        Extract the heap base address from the first heap description line.

        Args:
            lines: Captured output lines

        Returns:
            Heap base as an unsigned 64-bit value

        Raises:
            HeapBaseNotFound: If no line matches
        """
        for line in lines:
            match = HEAP_BASE_PATTERN.search(line)
            if match:
                addr = _parse_address(match.group(1))
                if addr is not None:
                    return addr
        raise HeapBaseNotFound()

    def in_window(self, heap_base: int, address: int) -> bool:
        # Python ints do not wrap, so base + window may exceed 2**64
        return heap_base <= address < heap_base + self.window_size

    def huge_page_total_for(self, lines: List[str], heap_base: int) -> int:
        """Sum AnonHugePages bytes of mappings starting inside the window."""
        total = 0
        for region in parse_regions(lines):
            if self.in_window(heap_base, region.start):
                total += region.anon_huge_bytes
        return total

    def check_usage(self, log_text: str) -> Verdict:
        """
        Decide whether the heap is backed by transparent huge pages.

        The complete log_text is echoed to the output stream first so it is
        visible regardless of the outcome.

        Args:
            log_text: Complete captured output of exactly one child run

        Returns:
            Verdict.PASSED, or Verdict.SKIPPED when the host lacks THP or
            MADV_POPULATE_WRITE support

        Raises:
            HeapBaseNotFound: If the heap base line is missing
            InsufficientHugePageUsage: If the threshold is not met
        """
        self.heap_base = None
        self.huge_page_total = None

        stream = self.stream if self.stream is not None else sys.stdout
        stream.write(log_text)
        stream.flush()

        lines = log_text.splitlines()
        if not self.features_supported(lines):
            return Verdict.SKIPPED

        self.heap_base = self.find_heap_base(lines)
        self.huge_page_total = self.huge_page_total_for(lines, self.heap_base)

        if self.huge_page_total < self.threshold:
            raise InsufficientHugePageUsage(self.huge_page_total, self.threshold)
        return Verdict.PASSED
