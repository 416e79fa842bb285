#!/usr/bin/env python3
"""
Verify that a pre-touched Java heap is backed by transparent huge pages.

Launches a JVM with -XX:+UseTransparentHugePages and -XX:+AlwaysPreTouch,
captures its /proc/self/smaps dump and checks AnonHugePages within the
heap's address range. Also reports:
- Host THP policy (enabled/defrag modes)
- THP fault statistics across the child run

Usage (run from repo root):
    python scripts/check_thp_usage.py
    python scripts/check_thp_usage.py --java /opt/jdk/bin/java --output thp.json
    python scripts/check_thp_usage.py --log-file captured.txt
"""

import argparse
import json
import sys
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, Optional

# Add repo root to Python path for thpcheck package import
sys.path.insert(0, str(Path(__file__).parent.parent))

from thpcheck.smaps import SmapsAnalyzer, AnalysisError, Verdict
from thpcheck.launcher import ChildLauncher, LaunchError, check_host
from thpcheck.constants import (
    DEFAULT_TIMEOUT,
    EXIT_SUCCESS,
    EXIT_FAILURE,
    HUGE_PAGE_USAGE_THRESHOLD,
    STATUS_OK,
    STATUS_ERROR,
    STATUS_SKIP,
)
from thpcheck.collectors import ThpCollector, VmstatCollector


class ReportError(Exception):
    """Raised when the JSON report cannot be written."""
    pass


def read_log(path: str) -> str:
    """Read previously captured child output; '-' reads stdin."""
    # smaps paths may hold bytes that are not valid UTF-8
    if path == "-":
        return sys.stdin.buffer.read().decode("utf-8", errors="replace")
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return f.read()


def run_check(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Execute the host check, child run and smaps analysis.

    Args:
        args: Parsed command line arguments

    Returns:
        Results dictionary (see save_results for the layout)

    Raises:
        LaunchError: If the child JVM fails
        OSError: If --log-file cannot be read
    """
    results = {
        "timestamp": datetime.now().isoformat(),
        "verdict": None,
        "heap_base": None,
        "huge_page_total": None,
        "threshold": HUGE_PAGE_USAGE_THRESHOLD,
        "error": None,
        "system_info": {},
        "summary": {}
    }

    if args.log_file:
        log_text = read_log(args.log_file)
    else:
        reason = check_host()
        if reason:
            print(f"Host check: {STATUS_SKIP} ({reason})")
            results["verdict"] = Verdict.SKIPPED.value
            return results
        print(f"Host check: {STATUS_OK}")

        launcher = ChildLauncher(
            java=args.java,
            vm_options=args.vm_option,
            timeout=args.timeout
        )
        reason = launcher.check_gc()
        if reason:
            print(f"GC check: {STATUS_SKIP} ({reason})")
            results["verdict"] = Verdict.SKIPPED.value
            return results
        print(f"GC check: {STATUS_OK}")

        collectors = [] if args.no_collectors else [ThpCollector(), VmstatCollector()]
        for collector in collectors:
            if hasattr(collector, 'get_system_info'):
                results["system_info"].update(collector.get_system_info())
            if hasattr(collector, 'start'):
                collector.start()

        log_text = launcher.run()

        for collector in collectors:
            if hasattr(collector, 'stop'):
                results["summary"].update(collector.stop())

    analyzer = SmapsAnalyzer()
    try:
        verdict = analyzer.check_usage(log_text)
        results["verdict"] = verdict.value
    except AnalysisError as e:
        results["verdict"] = "failed"
        results["error"] = str(e)

    if analyzer.heap_base is not None:
        results["heap_base"] = hex(analyzer.heap_base)
    results["huge_page_total"] = analyzer.huge_page_total
    return results


def print_summary(results: Dict[str, Any]) -> None:
    """
    Print verification summary.

    Args:
        results: Results dictionary from run_check
    """
    print()
    print("=" * 60)
    print("THP Usage Verification Summary")
    print("=" * 60)

    thp = results.get("system_info", {}).get("thp")
    if thp:
        print(f"\nTHP enabled: {thp.get('enabled', 'unknown')}  defrag: {thp.get('defrag', 'unknown')}")
        if "hpage_pmd_size_kb" in thp:
            print(f"  Huge page size: {thp['hpage_pmd_size_kb'] // 1024} MB")

    if results.get("heap_base"):
        print(f"\nHeap base: {results['heap_base']}")
    if results.get("huge_page_total") is not None:
        print(f"AnonHugePages in heap: {results['huge_page_total']:,} bytes "
              f"(threshold {results['threshold']:,})")

    vmstat = results.get("summary", {}).get("vmstat")
    if vmstat:
        print("\n" + "-" * 60)
        print("THP Fault Statistics")
        print("-" * 60)
        if "thp_fault_alloc_delta" in vmstat:
            print(f"THP allocations: {vmstat['thp_fault_alloc_delta']:,}")
        if "thp_fault_fallback_delta" in vmstat:
            print(f"THP fallbacks: {vmstat['thp_fault_fallback_delta']:,}")
        if "pgfault_delta" in vmstat:
            print(f"Page faults: {vmstat['pgfault_delta']:,}")

    verdict = results.get("verdict")
    if verdict == Verdict.PASSED.value:
        status = STATUS_OK
    elif verdict == Verdict.SKIPPED.value:
        status = STATUS_SKIP
    else:
        status = STATUS_ERROR
    print(f"\nVerdict: {status} ({verdict})")
    print("=" * 60)


def save_results(results: Dict[str, Any], filename: str) -> str:
    """
    Save verification results to JSON file.

    Args:
        results: Results dictionary from run_check
        filename: Output filename

    Returns:
        Path to saved results file

    Raises:
        ReportError: If file cannot be saved
    """
    try:
        filepath = Path(filename)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        with open(filepath, "w") as f:
            json.dump(results, f, indent=2)
        print(f"\nResults saved: {filename}")
        return str(filename)
    except (IOError, OSError) as e:
        raise ReportError(f"Failed to save results to {filename}: {e}")


def create_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = argparse.ArgumentParser(
        description="Check that a pre-touched Java heap uses transparent huge pages",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Launch the JVM found via TEST_JDK, JAVA_HOME or PATH
  python scripts/check_thp_usage.py

  # Specific JDK with an extra VM option, JSON report
  python scripts/check_thp_usage.py --java /opt/jdk/bin/java --vm-option=-Xlog:os --output thp.json

  # Analyze output captured earlier
  python scripts/check_thp_usage.py --log-file captured.txt
        """
    )

    parser.add_argument(
        "--java",
        help="Path to java executable (default: $TEST_JDK, $JAVA_HOME or PATH)"
    )

    parser.add_argument(
        "--vm-option",
        action="append",
        default=[],
        help="Additional VM option for the child JVM (repeatable)"
    )

    parser.add_argument(
        "--timeout",
        type=int,
        default=DEFAULT_TIMEOUT,
        help=f"Child JVM timeout in seconds (default: {DEFAULT_TIMEOUT})"
    )

    parser.add_argument(
        "--log-file",
        help="Analyze previously captured child output instead of launching ('-' for stdin)"
    )

    parser.add_argument(
        "--output",
        help="Output JSON filename (default: no report)"
    )

    parser.add_argument(
        "--no-collectors",
        action="store_true",
        help="Disable THP and vmstat collection"
    )

    return parser


def main(argv: Optional[list] = None) -> int:
    """
    Main function to execute the THP usage check.

    Returns:
        Exit code: 0 for passed or skipped, 1 for failure.
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        results = run_check(args)

        print_summary(results)

        if args.output:
            save_results(results, args.output)

        if results["error"]:
            print(f"ERROR: {results['error']}", file=sys.stderr)
            return EXIT_FAILURE

        return EXIT_SUCCESS

    except LaunchError as e:
        print(f"ERROR: Child JVM failed: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except ReportError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except OSError as e:
        print(f"ERROR: Could not read log: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print("\nCheck interrupted by user", file=sys.stderr)
        return EXIT_FAILURE
    except Exception as e:
        print(f"ERROR: Unexpected error: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
