"""Validate smaps parsing and the THP usage verdict."""

import io

import pytest

from thpcheck.constants import GB
from thpcheck.smaps import (
    HeapBaseNotFound,
    InsufficientHugePageUsage,
    MemoryRegion,
    SmapsAnalyzer,
    Verdict,
    parse_regions,
)


HEAP_BASE = 0x200000000


def mapping(start, end=None):
    end = end if end is not None else start + 0x1000
    return f"{start:x}-{end:x} rw-p 00000000 00:00 0"


def analyzer():
    return SmapsAnalyzer(stream=io.StringIO())


def test_heap_fully_backed_passes(log_factory):
    text = log_factory(
        "200000000-800000000 rw-p 00000000 00:00 0",
        "Size:            1048576 kB",
        "AnonHugePages:   1048576 kB",
    )
    a = analyzer()
    assert a.check_usage(text) is Verdict.PASSED
    assert a.heap_base == HEAP_BASE
    assert a.huge_page_total == 1073741824


def test_low_usage_fails_with_total(log_factory):
    text = log_factory(
        "200000000-800000000 rw-p 00000000 00:00 0",
        "AnonHugePages:        100 kB",
    )
    with pytest.raises(InsufficientHugePageUsage) as excinfo:
        analyzer().check_usage(text)
    assert excinfo.value.total == 102400
    assert "102400" in str(excinfo.value)


def test_missing_heap_base(log_factory):
    text = log_factory(
        "200000000-800000000 rw-p 00000000 00:00 0",
        "AnonHugePages:   1048576 kB",
        heap=False,
    )
    with pytest.raises(HeapBaseNotFound):
        analyzer().check_usage(text)


@pytest.mark.parametrize("thp,madv", [(False, True), (True, False), (False, False)])
def test_missing_gate_line_skips(log_factory, thp, madv):
    # Would fail on heap base if parsing went any further
    text = log_factory("AnonHugePages:   1048576 kB", thp=thp, madv=madv, heap=False)
    a = analyzer()
    assert a.check_usage(text) is Verdict.SKIPPED
    assert a.heap_base is None
    assert a.huge_page_total is None


def test_mapping_outside_window_ignored(log_factory):
    text = log_factory(
        mapping(HEAP_BASE + 2 * GB),
        "AnonHugePages:   4194304 kB",
        mapping(HEAP_BASE),
        "AnonHugePages:        100 kB",
    )
    with pytest.raises(InsufficientHugePageUsage) as excinfo:
        analyzer().check_usage(text)
    assert excinfo.value.total == 100 * 1024


def test_window_boundaries(log_factory):
    text = log_factory(
        mapping(HEAP_BASE),
        "AnonHugePages:          2 kB",
        mapping(HEAP_BASE + GB - 1),
        "AnonHugePages:          4 kB",
        mapping(HEAP_BASE + GB),
        "AnonHugePages:    1000000 kB",
    )
    a = SmapsAnalyzer(threshold=0, stream=io.StringIO())
    assert a.check_usage(text) is Verdict.PASSED
    assert a.huge_page_total == 6 * 1024


def test_window_does_not_wrap_near_top_of_address_space(log_factory):
    base = 0xFFFFFFFFC0000000 + 0x1000
    heap = f"[info][gc,init] Heap: reserved base=0x{base:x}"
    text = log_factory(
        heap,
        mapping(0x1000),
        "AnonHugePages:    1048576 kB",
        mapping(base),
        "AnonHugePages:        512 kB",
        heap=False,
    )
    a = analyzer()
    assert a.check_usage(text) is Verdict.PASSED
    assert a.heap_base == base
    assert a.huge_page_total == 512 * 1024


def test_usage_attributed_to_most_recent_mapping():
    lines = [
        "AnonHugePages:       8 kB",
        mapping(0x1000),
        "Rss:                 4 kB",
        "AnonHugePages:       2 kB",
        mapping(0x2000),
        "Size:                4 kB",
    ]
    assert parse_regions(lines) == [
        MemoryRegion(0x1000, 2048),
        MemoryRegion(0x2000, 0),
    ]


def test_order_of_mappings_does_not_change_total(log_factory):
    blocks = [
        [mapping(HEAP_BASE), "AnonHugePages:  2048 kB"],
        [mapping(HEAP_BASE + 0x40000000 - 0x200000), "AnonHugePages:  4096 kB"],
        [mapping(HEAP_BASE + 0x10000000), "AnonHugePages:   512 kB"],
    ]
    forward = [line for block in blocks for line in block]
    backward = [line for block in reversed(blocks) for line in block]

    totals = []
    for body in (forward, backward):
        a = analyzer()
        a.check_usage(log_factory(*body))
        totals.append(a.huge_page_total)
    assert totals[0] == totals[1] == (2048 + 4096 + 512) * 1024


def test_uppercase_hex_and_leading_zeros(log_factory):
    text = log_factory(
        "[info][gc,heap] Heap: reserved base=0x00000000ABC00000",
        "ABC00000-ABD00000 rw-p 00000000 00:00 0",
        "AnonHugePages:     1024 kB",
        heap=False,
    )
    a = analyzer()
    assert a.check_usage(text) is Verdict.PASSED
    assert a.heap_base == 0xABC00000


def test_oversized_address_is_not_a_mapping(log_factory):
    text = log_factory(
        mapping(HEAP_BASE),
        "AnonHugePages:        512 kB",
        "1200000000000000000-1200000000000001000 rw-p 00000000 00:00 0",
        "AnonHugePages:    1048576 kB",
    )
    a = analyzer()
    assert a.check_usage(text) is Verdict.PASSED
    assert a.huge_page_total == 512 * 1024


def test_log_echoed_before_failure(log_factory):
    text = log_factory(heap=False)
    stream = io.StringIO()
    with pytest.raises(HeapBaseNotFound):
        SmapsAnalyzer(stream=stream).check_usage(text)
    assert stream.getvalue() == text


def test_log_echoed_to_stdout_by_default(log_factory, capsys):
    text = log_factory(thp=False)
    SmapsAnalyzer().check_usage(text)
    assert capsys.readouterr().out == text


def test_non_ascii_digits_are_not_usage():
    lines = [
        mapping(HEAP_BASE),
        "AnonHugePages:   ١٠٠ kB",
        mapping(HEAP_BASE + 0x1000),
        "AnonHugePages:   100 kB",
    ]
    assert parse_regions(lines) == [
        MemoryRegion(HEAP_BASE, 0),
        MemoryRegion(HEAP_BASE + 0x1000, 100 * 1024),
    ]
