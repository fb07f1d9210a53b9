"""Port interfaces for the rendering daemon.

Defines protocols for supervising the daemon, sending render requests to
it, and observing whether it is still usable.
"""

from threading import Thread
from typing import Any, Protocol

from orgrender.domain.entities import DaemonState, RenderRequest, RenderResult


class LivenessReader(Protocol):
    """Read-only view of the daemon liveness state.

    The supervisor is the only writer; clients only ever read it.
    """

    @property
    def state(self) -> DaemonState:
        """Current daemon state."""
        ...

    def is_dead(self) -> bool:
        """Check if the daemon has been marked dead.

        Returns:
            True once the daemon is permanently unusable
        """
        ...


class DaemonSupervisor(LivenessReader, Protocol):
    """Protocol for managing the daemon lifecycle."""

    @property
    def owns_daemon(self) -> bool:
        """Whether this supervisor started the daemon it talks to."""
        ...

    def ping(self) -> bool:
        """Send a single no-op directive.

        Returns:
            True if a daemon with the configured name answered
        """
        ...

    def start(self) -> Any:
        """Start the daemon.

        Returns:
            Handle describing the spawned daemon

        Raises:
            DaemonStartupError: If the daemon cannot be spawned
            DaemonDeadError: If the daemon was already marked dead
        """
        ...

    def stop(self) -> Thread | None:
        """Ask the daemon to exit without blocking the caller.

        Returns:
            Thread running the retry loop, or None if there is nothing to stop
        """
        ...

    def stop_and_wait(self) -> bool:
        """Ask the daemon to exit, retrying on the calling thread.

        Returns:
            True if the daemon is gone
        """
        ...

    def wait_until_ready(self) -> bool:
        """Block until the daemon answers a ping.

        Returns:
            True if the daemon is reachable, False if it is dead
        """
        ...

    def cancel(self) -> None:
        """Abort pending readiness and stop loops."""
        ...


class RenderClient(Protocol):
    """Protocol for sending render requests to the daemon."""

    def invoke(self, request: RenderRequest) -> RenderResult:
        """Render one document.

        Args:
            request: Document to render

        Returns:
            RenderResult; failures are reported in the result, never raised
        """
        ...
