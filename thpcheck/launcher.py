"""
Child JVM launcher.

Starts a JVM that pre-touches its heap and dumps /proc/self/smaps,
and captures everything it writes to stdout.
"""

import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Dict, List, Optional

from .constants import (
    DEFAULT_TIMEOUT,
    FIXED_VM_OPTIONS,
    KB,
    MIN_HOST_MEMORY_BYTES,
    VM_OPTIONS_ENV_VARS,
)


SMAPS_DUMPER = Path(__file__).parent / "resources" / "CatSmaps.java"


class LaunchError(Exception):
    """Raised when the child JVM cannot be started or does not finish cleanly."""
    pass


def find_java(environ: Optional[Dict[str, str]] = None) -> Optional[str]:
    """
    Locate the java executable.

    Looks at $TEST_JDK and $JAVA_HOME before falling back to PATH.

    Args:
        environ: Environment mapping (default: os.environ)

    Returns:
        Path to java or None if not found
    """
    if environ is None:
        environ = os.environ

    for var in ("TEST_JDK", "JAVA_HOME"):
        home = environ.get(var)
        if home:
            candidate = Path(home) / "bin" / "java"
            if candidate.is_file():
                return str(candidate)

    return shutil.which("java")


def read_mem_total(meminfo_path: str = "/proc/meminfo") -> Optional[int]:
    """Return MemTotal in bytes, or None if it cannot be read."""
    try:
        with open(meminfo_path, "r") as f:
            for line in f:
                if line.startswith("MemTotal:"):
                    return int(line.split()[1]) * KB
    except (FileNotFoundError, ValueError, IndexError):
        pass
    return None


def check_host(platform: Optional[str] = None,
               meminfo_path: str = "/proc/meminfo") -> Optional[str]:
    """
    Check whether this host can run the verification at all.

    Returns:
        Reason to skip, or None if the host qualifies
    """
    if platform is None:
        platform = sys.platform

    if not platform.startswith("linux"):
        return f"requires linux (running on {platform})"

    mem_total = read_mem_total(meminfo_path)
    if mem_total is None:
        return "could not determine host memory size"
    if mem_total <= MIN_HOST_MEMORY_BYTES:
        return f"requires more than {MIN_HOST_MEMORY_BYTES // (KB * KB)} MB of memory"

    return None


class ChildLauncher:
    """
    Build and run the child JVM command line.

    Extra VM options come first so the fixed options always win.
    """

    def __init__(self, java: Optional[str] = None,
                 vm_options: Optional[List[str]] = None,
                 timeout: int = DEFAULT_TIMEOUT,
                 environ: Optional[Dict[str, str]] = None):
        """
        Initialize launcher.

        Args:
            java: Path to java executable (auto-detected if None)
            vm_options: Additional VM options from the command line
            timeout: Seconds to wait for the child to exit
            environ: Environment mapping (default: os.environ)
        """
        self.environ = environ if environ is not None else os.environ
        self.java = java
        self.vm_options = list(vm_options) if vm_options else []
        self.timeout = timeout

    def _env_vm_options(self) -> List[str]:
        options = []
        for var in VM_OPTIONS_ENV_VARS:
            options.extend(self.environ.get(var, "").split())
        return options

    def _java(self) -> str:
        java = self.java or find_java(self.environ)
        if java is None:
            raise LaunchError("java executable not found (set --java, TEST_JDK or JAVA_HOME)")
        return java

    def _execute(self, command: List[str]) -> subprocess.CompletedProcess:
        # smaps paths may hold bytes that are not valid UTF-8
        try:
            return subprocess.run(
                command,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            raise LaunchError(f"child JVM timed out after {self.timeout} seconds")
        except (FileNotFoundError, PermissionError) as e:
            raise LaunchError(f"failed to start child JVM: {e}")

    def check_gc(self) -> Optional[str]:
        """
        Check that the JVM was built with ParallelGC.

        Returns:
            Reason to skip, or None if -XX:+UseParallelGC is accepted

        Raises:
            LaunchError: If java cannot be found or started
        """
        result = self._execute([
            self._java(),
            *self._env_vm_options(),
            *self.vm_options,
            "-XX:+UseParallelGC",
            "-version",
        ])
        if result.returncode != 0:
            return "requires ParallelGC (rejected by -XX:+UseParallelGC -version)"
        return None

    def build_command(self) -> List[str]:
        """
        Assemble the child command line.

        Returns:
            Argument vector for subprocess

        Raises:
            LaunchError: If no java executable can be found
        """
        return [
            self._java(),
            *self._env_vm_options(),
            *self.vm_options,
            *FIXED_VM_OPTIONS,
            str(SMAPS_DUMPER),
        ]

    def run(self) -> str:
        """
        Run the child JVM to completion and capture its stdout.

        Returns:
            Complete captured stdout

        Raises:
            LaunchError: If the child cannot start, times out or fails
        """
        command = self.build_command()
        print(f"Child JVM: {' '.join(command)}")

        result = self._execute(command)
        if result.returncode != 0:
            stderr_tail = "\n".join(result.stderr.splitlines()[-10:])
            raise LaunchError(
                f"child JVM exited with status {result.returncode}: {stderr_tail}"
            )

        return result.stdout
