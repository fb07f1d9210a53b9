"""Progress reporting utilities for CLI commands.

Shows a Rich spinner on stderr while the daemon boots, so rendered output
on stdout stays clean.
"""

import logging
from typing import TYPE_CHECKING

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

if TYPE_CHECKING:
    from orgrender.ports.daemon import DaemonSupervisor

logger = logging.getLogger(__name__)


def start_daemon_with_progress(
    supervisor: "DaemonSupervisor", quiet: bool = False
) -> bool:
    """Start the daemon and wait until it answers, showing a spinner.

    Args:
        supervisor: Daemon supervisor (injected dependency)
        quiet: Suppress progress output

    Returns:
        True if the daemon is reachable, False if it died while starting

    Raises:
        DaemonStartupError: If the daemon cannot be spawned
        DaemonDeadError: If the daemon was already marked dead
    """
    if quiet:
        supervisor.start()
        return supervisor.wait_until_ready()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=Console(stderr=True),
        transient=True,
    ) as progress:
        task = progress.add_task("Starting Emacs daemon...", total=None)
        supervisor.start()
        progress.update(task, description="Waiting for Emacs daemon...")
        ready = supervisor.wait_until_ready()
        if not ready:
            logger.warning("Daemon did not become ready")
        return ready
