"""Thread-safe daemon liveness flag."""

import logging
import threading

from orgrender.domain.entities import DaemonState

logger = logging.getLogger(__name__)


class DaemonLiveness:
    """Atomic state cell owned by a single supervisor.

    DEAD is terminal: once reached, no other transition is accepted.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = DaemonState.NOT_STARTED

    @property
    def state(self) -> DaemonState:
        with self._lock:
            return self._state

    def is_dead(self) -> bool:
        return self.state is DaemonState.DEAD

    def _transition(self, new_state: DaemonState, allowed: tuple) -> bool:
        with self._lock:
            if self._state not in allowed:
                return False
            logger.debug(f"Daemon state {self._state.value} -> {new_state.value}")
            self._state = new_state
            return True

    def mark_starting(self) -> bool:
        """Move NOT_STARTED -> STARTING."""
        return self._transition(DaemonState.STARTING, (DaemonState.NOT_STARTED,))

    def mark_alive(self) -> bool:
        """Move STARTING -> ALIVE."""
        return self._transition(
            DaemonState.ALIVE, (DaemonState.NOT_STARTED, DaemonState.STARTING)
        )

    def mark_dead(self) -> bool:
        """Mark the daemon dead.

        Returns:
            True only for the call that performed the transition
        """
        return self._transition(
            DaemonState.DEAD,
            (DaemonState.NOT_STARTED, DaemonState.STARTING, DaemonState.ALIVE),
        )
