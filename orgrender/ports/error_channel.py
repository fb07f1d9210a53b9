"""Error channel port.

The daemon reports fatal failures out of band. This port hides the transport
(a sentinel file today) from the supervisor.
"""

from typing import Protocol

from orgrender.domain.entities import EngineError


class ErrorChannel(Protocol):
    """Protocol for the daemon's fatal-error side channel."""

    @property
    def location(self) -> str:
        """Address handed to the daemon at start (a file path for sentinels)."""
        ...

    def read_error(self) -> EngineError | None:
        """Read the fatal error record, if any.

        Returns:
            EngineError if the daemon reported one, None otherwise.
            Unreadable or malformed records count as no error.
        """
        ...

    def discard(self) -> None:
        """Release the channel's resources."""
        ...
