"""
Status, exit code and measurement constants following project style guide.

These constants ensure consistent output formatting across the
verification tools and match bash script conventions.
"""

# Status indicators (matching bash script conventions)
STATUS_OK = "OK"
STATUS_WARN = "WARN"
STATUS_ERROR = "ERROR"
STATUS_INFO = "INFO"
STATUS_SKIP = "SKIP"

# Exit codes (Unix standard); a skipped check is not a failure
EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_INVALID_USAGE = 2

# Sizes
KB = 1024
GB = 1024 * 1024 * 1024
MAX_ADDRESS = (1 << 64) - 1

# Heap scan window above the heap base, independent of -Xmx
SCAN_WINDOW_BYTES = 1 * GB

# Even with MADV_POPULATE_WRITE the heap is one huge page short of full
HUGE_PAGE_USAGE_THRESHOLD = 524288

# Host must have strictly more memory than this to run the child
MIN_HOST_MEMORY_BYTES = 2 * GB

# Child JVM options: ParallelGC pretouches the whole heap in one go
FIXED_VM_OPTIONS = [
    "-XX:+UseTransparentHugePages",
    "-XX:+AlwaysPreTouch",
    "-Xlog:startuptime,pagesize,gc+os=debug",
    "-XX:+UseParallelGC",
    "-XX:ParallelGCThreads=1",
    "-Xms1G",
    "-Xmx1G",
    "-Xmn512M",
    "-XX:PreTouchParallelChunkSize=512M",
]

# Environment variables holding extra VM options (jtreg conventions)
VM_OPTIONS_ENV_VARS = ["TEST_VM_OPTS", "JAVA_OPTIONS"]

DEFAULT_TIMEOUT = 300
