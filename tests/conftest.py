import pytest


THP_LINE = "[0.005s][info ][pagesize ] UseTransparentHugePages=1 (madvise)"
MADV_LINE = "[0.006s][debug][gc,os    ] UseMadvPopulateWrite=1"
HEAP_LINE = ("[0.010s][info ][pagesize ] Heap: min=1G max=1G "
             "base=0x0000000200000000 size=1G page_size=2M")


def make_log(*body, thp=True, madv=True, heap=True):
    lines = ["[0.001s][info][startuptime] Create VM"]
    if thp:
        lines.append(THP_LINE)
    if madv:
        lines.append(MADV_LINE)
    if heap:
        lines.append(HEAP_LINE)
    lines.extend(body)
    return "\n".join(lines) + "\n"


@pytest.fixture
def log_factory():
    return make_log
