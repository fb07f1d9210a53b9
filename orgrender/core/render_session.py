"""Render session: one daemon lifetime around a batch of requests."""

import logging

from orgrender.core.progress import start_daemon_with_progress
from orgrender.domain.entities import RenderRequest, RenderResult
from orgrender.domain.exceptions import DaemonStartupError
from orgrender.ports.daemon import DaemonSupervisor, RenderClient

logger = logging.getLogger(__name__)

STOP_JOIN_TIMEOUT = 5.0


class RenderSession:
    """Context manager that starts the daemon, renders, and stops it.

    A daemon that already answers before the session starts (for example one
    left running by 'orgrender daemon start') is reused and left running.

    Example:
        with RenderSession(supervisor, client) as session:
            result = session.render(RenderRequest(Path("post.org")))
    """

    def __init__(
        self,
        supervisor: DaemonSupervisor,
        client: RenderClient,
        quiet: bool = False,
        stop_timeout: float = STOP_JOIN_TIMEOUT,
    ):
        self.supervisor = supervisor
        self.client = client
        self.quiet = quiet
        self.stop_timeout = stop_timeout
        self.started = False

    def __enter__(self) -> "RenderSession":
        if self.supervisor.ping():
            logger.info("Using the resident Emacs daemon")
            return self

        self.started = True
        if not start_daemon_with_progress(self.supervisor, quiet=self.quiet):
            self.close()
            raise DaemonStartupError(
                "Emacs daemon did not become ready",
                hint="Run with --verbose and set org.debug = true in config.toml",
            )
        return self

    def render(self, request: RenderRequest) -> RenderResult:
        return self.client.invoke(request)

    def close(self) -> None:
        """Stop the daemon this session started, waiting at most stop_timeout."""
        if not self.started:
            return
        if not self.supervisor.owns_daemon:
            logger.info("Daemon was already running, leaving it up")
            return

        worker = self.supervisor.stop()
        if worker is None:
            return
        worker.join(self.stop_timeout)
        if worker.is_alive():
            logger.warning(
                f"Daemon still running after {self.stop_timeout}s, leaving it behind"
            )
            self.supervisor.cancel()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
