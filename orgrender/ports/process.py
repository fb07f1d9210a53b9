"""Process runner port.

Defines the interface used to launch the engine and its client binaries.
"""

from collections.abc import Sequence
from typing import Protocol


class ProcessHandle(Protocol):
    """Subset of subprocess.Popen used by the supervisor."""

    pid: int
    returncode: int | None

    def wait(self, timeout: float | None = None) -> int: ...

    def poll(self) -> int | None: ...


class ProcessRunner(Protocol):
    """Protocol for running external processes."""

    def run(self, args: Sequence[str], timeout: float | None = None) -> int:
        """Run a process to completion.

        Args:
            args: Command line
            timeout: Seconds to wait before killing the process (None = forever)

        Returns:
            Process exit code

        Raises:
            OSError: If the process cannot be spawned
            subprocess.TimeoutExpired: If the timeout elapses
        """
        ...

    def spawn(self, args: Sequence[str]) -> ProcessHandle:
        """Start a process without waiting for it.

        Args:
            args: Command line

        Returns:
            Handle to the running process

        Raises:
            OSError: If the process cannot be spawned
        """
        ...
