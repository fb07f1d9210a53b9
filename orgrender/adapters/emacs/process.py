"""Subprocess-backed process runner for emacs and emacsclient."""

import logging
import subprocess
from collections.abc import Sequence

logger = logging.getLogger(__name__)


class SubprocessRunner:
    """Runs the engine binaries with the parent's stdio.

    emacsclient -nw and htmlize both need a terminal, so neither stdin
    nor stdout is redirected.
    """

    def run(self, args: Sequence[str], timeout: float | None = None) -> int:
        """Run a process to completion.

        Args:
            args: Command line
            timeout: Seconds before the process is killed (None = forever)

        Returns:
            Process exit code

        Raises:
            OSError: If the binary cannot be spawned
            subprocess.TimeoutExpired: If the timeout elapses (the process
                has been killed by then)
        """
        logger.debug(f"Running {args[0]} ({len(args)} args)")
        completed = subprocess.run(list(args), timeout=timeout, check=False)
        return completed.returncode

    def spawn(self, args: Sequence[str]) -> subprocess.Popen:
        """Start a process without waiting for it.

        Args:
            args: Command line

        Returns:
            The spawned process

        Raises:
            OSError: If the binary cannot be spawned
        """
        logger.debug(f"Spawning {args[0]} ({len(args)} args)")
        return subprocess.Popen(list(args))
